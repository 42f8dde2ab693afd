from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name='femdown',
    version='1.0.0',
    description='CLI downloader for Frontend Masters courses: lesson videos and subtitles.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='MIT',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.10',
    entry_points={
        'console_scripts': [
            'femdown = femdown.cli:main',
        ],
    },
    install_requires=[
        'beautifulsoup4>=4.12.0',
        'click>=8.1.0',
        'validators>=0.22.0',
        'keyring>=24.0.0',
        'aiohttp>=3.9.0',
        'aiofiles>=24.1.0',
        'rich>=13.7.0',
        'playwright>=1.40.0',
        'yt-dlp>=2024.3.10',
    ],
    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
            'pytest-cov>=4.1.0',
            'black>=23.7.0',
            'flake8>=6.0.0',
            'mypy>=1.5.0',
            'pre-commit>=3.3.0',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Education',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Multimedia :: Video',
    ],
    keywords='frontendmasters education video subtitles downloader cli course',
)
