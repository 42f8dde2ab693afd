"""
femdown - download Frontend Masters courses.

Logs in through a real browser, lists the purchased courses and lessons, and
downloads every lesson video and subtitle track to disk.
"""

__version__ = "1.0.0"

from .exceptions import (
    FemdownError,
    AuthenticationError,
    LoginAbortedError,
    SessionExpiredError,
    NetworkError,
    ParseError,
    VideoSourceError,
    DownloadError,
    ConfigurationError,
    ValidationError,
    InvalidCourseIdError,
)

from .models import (
    Session,
    LessonInfo,
    DownloadOptions,
    AppConfig,
)

from .config import ConfigManager, SessionStore
from .auth import BrowserLogin, LoginWatcher
from .api_client import FemApiClient
from .course_manager import CourseManager, parse_course_id
from .downloaders import FileDownloader, VideoDownloader
from .download_manager import DownloadManager, DownloadProgress, RetryPolicy
from .logging_config import setup_logging, get_logger

__all__ = [
    "FemdownError",
    "AuthenticationError",
    "LoginAbortedError",
    "SessionExpiredError",
    "NetworkError",
    "ParseError",
    "VideoSourceError",
    "DownloadError",
    "ConfigurationError",
    "ValidationError",
    "InvalidCourseIdError",
    "Session",
    "LessonInfo",
    "DownloadOptions",
    "AppConfig",
    "ConfigManager",
    "SessionStore",
    "BrowserLogin",
    "LoginWatcher",
    "FemApiClient",
    "CourseManager",
    "parse_course_id",
    "FileDownloader",
    "VideoDownloader",
    "DownloadManager",
    "DownloadProgress",
    "RetryPolicy",
    "setup_logging",
    "get_logger",
]
