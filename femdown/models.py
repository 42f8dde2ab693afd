"""Data models for femdown."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse


VIDEO_FORMATS = ("mp4", "webm")

# CLI tier name -> vertical resolution accepted by the video source endpoint
RESOLUTION_TIERS = {
    "low": 360,
    "medium": 720,
    "high": 1080,
}

DEFAULT_ENDPOINTS = {
    'login': 'https://frontendmasters.com/login/',
    'referer': 'https://frontendmasters.com/',
    'course_list': 'https://frontendmasters.com/courses/',
    'course_detail': 'https://api.frontendmasters.com/v1/kabuki/courses/{course_id}',
    'subtitles': 'https://static.frontendmasters.com/assets/courses/{date_published}-{course_id}/{index}-{slug}.vtt',
}


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


@dataclass(frozen=True)
class Session:
    """Authenticated session: the serialized cookie set captured after login."""

    cookies_str: str
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate session after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate session."""
        if not self.cookies_str or not isinstance(self.cookies_str, str):
            raise ValueError("Session cookies must be a non-empty string")

        if not isinstance(self.created_at, datetime):
            raise ValueError("Created at must be a datetime object")

    @classmethod
    def from_cookies(cls, cookies: Iterable[Mapping[str, str]]) -> "Session":
        """Build a session from browser cookie records (dicts with name/value)."""
        return cls(cookies_str="; ".join(f"{c['name']}={c['value']}" for c in cookies))

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookie pairs parsed back out of the serialized string."""
        pairs = {}
        for chunk in self.cookies_str.split(";"):
            name, sep, value = chunk.strip().partition("=")
            if sep and name:
                pairs[name] = value
        return pairs

    @property
    def age_seconds(self) -> float:
        """Seconds since the session was captured."""
        return (datetime.now() - self.created_at).total_seconds()

    def get_cookie_header(self) -> str:
        """Get cookies formatted for HTTP header."""
        return self.cookies_str


@dataclass(frozen=True)
class LessonInfo:
    """One lesson of a course: where its video comes from and its subtitle track."""

    src: str
    slug: str
    index: int
    vtt: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not self.src or not isinstance(self.src, str) or not _is_url(self.src):
            raise ValueError("Lesson source must be a valid URL")

        if not self.slug or not isinstance(self.slug, str):
            raise ValueError("Lesson slug must be a non-empty string")

        if isinstance(self.index, bool) or not isinstance(self.index, int) or self.index < 0:
            raise ValueError("Lesson index must be a non-negative integer")

        if self.vtt is not None and not _is_url(self.vtt):
            raise ValueError("Subtitle URL must be a valid URL")

    @property
    def has_subtitles(self) -> bool:
        return self.vtt is not None

    @property
    def file_stem(self) -> str:
        """Base name shared by the video and subtitle files, e.g. ``003_intro``."""
        return f"{self.index:03d}_{self.slug}"


@dataclass
class DownloadOptions:
    """Options for one download run."""

    output_directory: str = "./downloads"
    video_format: str = "mp4"
    resolution: int = 720
    concurrent_downloads: int = 6
    retry_delay: float = 3.0

    def __post_init__(self):
        """Validate download options after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate download options."""
        if not self.output_directory or not isinstance(self.output_directory, str):
            raise ValueError("Output directory must be a non-empty string")

        if self.video_format not in VIDEO_FORMATS:
            raise ValueError(f"Invalid video format: {self.video_format}")

        if self.resolution not in RESOLUTION_TIERS.values():
            raise ValueError(f"Invalid resolution: {self.resolution}")

        if (isinstance(self.concurrent_downloads, bool)
                or not isinstance(self.concurrent_downloads, int)
                or self.concurrent_downloads < 1):
            raise ValueError("Concurrent downloads must be a positive integer")

        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ValueError("Retry delay must be a non-negative number")

    @property
    def output_path(self) -> Path:
        """Get output directory as Path object."""
        return Path(self.output_directory).expanduser().resolve()


@dataclass
class AppConfig:
    """Application configuration."""

    cache_directory: str = "~/.cache/femdown"
    default_output_dir: str = "./downloads"
    max_concurrent_downloads: int = 6
    retry_delay: float = 3.0
    rate_limit_delay: float = 0.0
    video_format: str = "mp4"
    resolution: str = "medium"
    session_max_age: int = 3600
    browser_channel: Optional[str] = None
    browser_executable: Optional[str] = None

    endpoints: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))

    def __post_init__(self):
        """Validate application configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """Validate application configuration."""
        if not self.cache_directory or not isinstance(self.cache_directory, str):
            raise ValueError("Cache directory must be a non-empty string")

        if not self.default_output_dir or not isinstance(self.default_output_dir, str):
            raise ValueError("Default output directory must be a non-empty string")

        if (isinstance(self.max_concurrent_downloads, bool)
                or not isinstance(self.max_concurrent_downloads, int)
                or self.max_concurrent_downloads < 1):
            raise ValueError("Max concurrent downloads must be a positive integer")

        if not isinstance(self.retry_delay, (int, float)) or self.retry_delay < 0:
            raise ValueError("Retry delay must be a non-negative number")

        if not isinstance(self.rate_limit_delay, (int, float)) or self.rate_limit_delay < 0:
            raise ValueError("Rate limit delay must be a non-negative number")

        if self.video_format not in VIDEO_FORMATS:
            raise ValueError(f"Invalid video format: {self.video_format}")

        if self.resolution not in RESOLUTION_TIERS:
            raise ValueError(f"Invalid resolution: {self.resolution}")

        if not isinstance(self.session_max_age, int) or self.session_max_age < 0:
            raise ValueError("Session max age must be a non-negative integer")

        missing = [key for key in DEFAULT_ENDPOINTS if key not in self.endpoints]
        if missing:
            raise ValueError(f"Missing endpoints: {', '.join(missing)}")

    @property
    def cache_path(self) -> Path:
        """Get cache directory path as Path object."""
        return Path(self.cache_directory).expanduser().resolve()


def resolution_tiers() -> List[str]:
    """Tier names in ascending resolution order."""
    return sorted(RESOLUTION_TIERS, key=RESOLUTION_TIERS.get)
