"""Main application flow for femdown."""

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Callable, List, Optional, Sequence

from .config import ConfigManager
from .auth import BrowserLogin
from .api_client import FemApiClient
from .course_manager import CourseManager, parse_course_id
from .download_manager import DownloadManager, DownloadProgress, RetryPolicy
from .models import AppConfig, DownloadOptions, Session, RESOLUTION_TIERS
from .exceptions import ConfigurationError, FemdownError, SessionExpiredError
from .logging_config import get_logger, log_with_context, performance_timer

logger = get_logger(__name__)


class FemdownApp:
    """Wires configuration, login, listing and downloading together."""

    def __init__(self, config_file: Optional[str] = None, config_manager: Optional[ConfigManager] = None):
        """Initialize the application.

        Args:
            config_file: Optional path to configuration file.
            config_manager: Already-built configuration manager (takes precedence).
        """
        self.config_manager = config_manager or ConfigManager(config_file)
        self.session: Optional[Session] = None
        self.session_from_store = False
        self.api_client: Optional[FemApiClient] = None
        self.course_manager: Optional[CourseManager] = None

    @property
    def config(self) -> AppConfig:
        return self.config_manager.config

    async def initialize(self, fresh_login: bool = False, login: Optional[BrowserLogin] = None) -> None:
        """Obtain a session (stored or via browser login) and build the API client.

        Args:
            fresh_login: Ignore any stored session.
            login: Login flow to use; defaults to a BrowserLogin for this config.

        Raises:
            AuthenticationError: If the login does not complete.
        """
        store = self.config_manager.session_store

        session = None if fresh_login else store.load(max_age=self.config.session_max_age)
        self.session_from_store = session is not None

        if session is None:
            login = login or BrowserLogin(self.config)
            with performance_timer("browser_login", logger):
                session = await login.login()
            store.save(session)

        log_with_context(logger, logging.INFO, "Session ready", {
            'from_store': self.session_from_store
        })

        self.session = session
        self.api_client = FemApiClient(self.config, session)
        await self.api_client.open()
        self.course_manager = CourseManager(self.api_client)

    def _require_initialized(self) -> CourseManager:
        if not self.course_manager:
            raise FemdownError("Application not initialized")
        return self.course_manager

    @contextmanager
    def _forget_rejected_session(self):
        """Clear the stored session if the server rejects it, so the next run logs in again."""
        try:
            yield
        except SessionExpiredError:
            if self.session_from_store:
                logger.warning("Stored session was rejected; it has been cleared")
                self.config_manager.session_store.clear()
            raise

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(delay=self.config.retry_delay)

    async def resolve_course_ids(self, inputs: Sequence[str], all_courses: bool = False) -> List[str]:
        """Course ids to download: every listed course, or the parsed user inputs."""
        if not all_courses:
            return [parse_course_id(value) for value in inputs]

        course_manager = self._require_initialized()
        with self._forget_rejected_session():
            return await self.retry_policy.run(course_manager.get_course_ids, "Listing courses")

    def download_options(
        self,
        output_dir: Optional[str] = None,
        video_format: Optional[str] = None,
        resolution: Optional[str] = None,
        concurrent_downloads: Optional[int] = None
    ) -> DownloadOptions:
        """Build download options, filling gaps from configuration.

        Raises:
            ConfigurationError: If a value is invalid.
        """
        tier = resolution or self.config.resolution
        if tier not in RESOLUTION_TIERS:
            raise ConfigurationError(f"Invalid resolution: {tier}", config_key='resolution')

        try:
            return DownloadOptions(
                output_directory=output_dir or self.config.default_output_dir,
                video_format=video_format or self.config.video_format,
                resolution=RESOLUTION_TIERS[tier],
                concurrent_downloads=concurrent_downloads or self.config.max_concurrent_downloads,
                retry_delay=self.config.retry_delay
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid download options: {e}")

    async def download(
        self,
        course_ids: List[str],
        options: DownloadOptions,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None
    ) -> DownloadProgress:
        """Download the given courses."""
        course_manager = self._require_initialized()

        with self._forget_rejected_session():
            async with DownloadManager(course_manager, options, progress_callback) as manager:
                return await manager.download_courses(course_ids)

    def logout(self) -> None:
        """Forget the stored session."""
        self.config_manager.session_store.clear()

    async def cleanup(self) -> None:
        """Close connections."""
        if self.api_client:
            await self.api_client.close()
            self.api_client = None


@asynccontextmanager
async def create_app(config_file: Optional[str] = None, config_manager: Optional[ConfigManager] = None):
    """Create the application and clean it up afterwards."""
    app = FemdownApp(config_file, config_manager)
    try:
        yield app
    finally:
        await app.cleanup()
