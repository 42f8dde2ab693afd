"""Download orchestration: courses in order, lessons concurrently under one limit."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

import aiohttp

from .course_manager import CourseManager
from .downloaders import FileDownloader, VideoDownloader
from .models import DownloadOptions, LessonInfo
from .exceptions import AuthenticationError, DownloadError, NetworkError, VideoSourceError
from .logging_config import get_logger, log_with_context, performance_timer

logger = get_logger(__name__)

T = TypeVar('T')

# 4xx statuses that are still worth another try
RETRYABLE_CLIENT_STATUSES = (408, 429)


@dataclass
class RetryPolicy:
    """Fixed-delay retry. ``max_attempts=None`` retries forever."""

    delay: float = 3.0
    max_attempts: Optional[int] = None

    def is_retryable(self, error: BaseException) -> bool:
        """Transient network and resolution failures are retryable; nothing else is."""
        if isinstance(error, AuthenticationError):
            return False

        if isinstance(error, NetworkError):
            status = error.status_code
            return status is None or status >= 500 or status in RETRYABLE_CLIENT_STATUSES

        return isinstance(error, (
            VideoSourceError, DownloadError, aiohttp.ClientError, asyncio.TimeoutError, OSError
        ))

    async def run(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Await ``operation()`` until it succeeds or fails with a non-retryable error."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    raise
                log_with_context(logger, logging.WARNING, f"{description} failed, retrying in {self.delay}s: {e}", {
                    'operation': description,
                    'error_type': type(e).__name__,
                })
                await asyncio.sleep(self.delay)


@dataclass
class DownloadProgress:
    """Progress across a whole run."""

    total_courses: int
    courses_completed: int = 0
    videos_completed: int = 0
    subtitles_completed: int = 0

    @property
    def is_complete(self) -> bool:
        return self.courses_completed == self.total_courses

    @property
    def description(self) -> str:
        return f"downloading.. [{self.courses_completed}/{self.total_courses}, videos: {self.videos_completed}]"


class DownloadManager:
    """Downloads every lesson video (and subtitle) of a list of courses.

    Courses are processed one after another. Within a course all lessons are
    started together, but at most ``options.concurrent_downloads`` video or
    subtitle operations hold a slot at any moment. A video operation is the
    source URL resolution plus the download itself.
    """

    def __init__(self, course_manager: CourseManager, options: DownloadOptions,
                 progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 file_downloader: Optional[FileDownloader] = None,
                 video_downloader: Optional[VideoDownloader] = None):
        """Initialize download manager.

        Args:
            course_manager: Lists lessons and resolves video URLs.
            options: Download configuration options.
            progress_callback: Called with the run's DownloadProgress after every change.
            retry_policy: Retry behaviour; defaults to forever with ``options.retry_delay``.
            file_downloader: Subtitle downloader. Created and owned here if omitted.
            video_downloader: Video downloader. Created here if omitted.
        """
        self.course_manager = course_manager
        self.options = options
        self.progress_callback = progress_callback
        self.retry_policy = retry_policy or RetryPolicy(delay=options.retry_delay)
        self.download_semaphore = asyncio.Semaphore(options.concurrent_downloads)
        self.output_path = options.output_path
        self._reported_sources = set()

        self._owns_file_downloader = file_downloader is None
        self.file_downloader = file_downloader or FileDownloader()
        self.video_downloader = video_downloader or VideoDownloader()

    async def __aenter__(self):
        if self._owns_file_downloader:
            await self.file_downloader.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_file_downloader:
            await self.file_downloader.__aexit__(exc_type, exc_val, exc_tb)

    def _report(self, progress: Optional[DownloadProgress]) -> None:
        if progress is not None and self.progress_callback:
            self.progress_callback(progress)

    async def download_courses(self, course_ids: List[str]) -> DownloadProgress:
        """Download the given courses in order.

        Returns:
            Final progress of the run.
        """
        progress = DownloadProgress(total_courses=len(course_ids))
        self._report(progress)

        with performance_timer("download_courses", logger):
            for course_id in course_ids:
                await self.download_course(course_id, progress)
                progress.courses_completed += 1
                self._report(progress)

        log_with_context(logger, logging.INFO, "Download run completed", {
            'courses': progress.courses_completed,
            'videos': progress.videos_completed,
            'subtitles': progress.subtitles_completed,
        })
        return progress

    async def download_course(self, course_id: str, progress: Optional[DownloadProgress] = None) -> List[LessonInfo]:
        """Download every lesson of one course into ``<output>/<course_id>/``.

        Returns:
            The lessons that were downloaded.
        """
        course_dir = self._create_course_directory(course_id)

        lessons = await self.retry_policy.run(
            lambda: self.course_manager.get_lesson_infos(course_id),
            f"Listing lessons of {course_id}"
        )

        log_with_context(logger, logging.INFO, "Starting course download", {
            'course_id': course_id,
            'lessons': len(lessons),
            'course_dir': str(course_dir),
            'concurrent_downloads': self.options.concurrent_downloads
        })

        operations = []
        for lesson in lessons:
            operations.append(self._download_video(lesson, course_dir, progress))
            if lesson.has_subtitles:
                operations.append(self._download_subtitle(lesson, course_dir, progress))

        with performance_timer(f"download_course {course_id}", logger):
            await self._run_all(operations)

        return lessons

    async def _run_all(self, operations: List[Awaitable[None]]) -> None:
        """Run operations concurrently; the first fatal error cancels the rest."""
        tasks = [asyncio.ensure_future(operation) for operation in operations]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _create_course_directory(self, course_id: str) -> Path:
        course_dir = self.output_path / course_id
        course_dir.mkdir(parents=True, exist_ok=True)
        return course_dir

    def video_path(self, lesson: LessonInfo, course_dir: Path) -> Path:
        return course_dir / f"{lesson.file_stem}.{self.options.video_format}"

    def subtitle_path(self, lesson: LessonInfo, course_dir: Path) -> Path:
        return course_dir / f"{lesson.file_stem}.vtt"

    async def _resolve_video_url(self, lesson: LessonInfo) -> str:
        """Ask for the lesson's video URL; a refusal is reported once at ERROR before it is retried."""
        try:
            return await self.course_manager.get_lesson_video_url(
                lesson.src, self.options.video_format, self.options.resolution
            )
        except VideoSourceError as e:
            if lesson.src not in self._reported_sources:
                self._reported_sources.add(lesson.src)
                log_with_context(logger, logging.ERROR,
                                 f"No video for {lesson.file_stem}: {e}; retrying until interrupted", {
                                     'lesson': lesson.file_stem,
                                     'src': lesson.src,
                                 })
            raise

    async def _download_video(self, lesson: LessonInfo, course_dir: Path,
                              progress: Optional[DownloadProgress]) -> None:
        dest = self.video_path(lesson, course_dir)

        async with self.download_semaphore:
            video_url = await self.retry_policy.run(
                lambda: self._resolve_video_url(lesson),
                f"Resolving video for {lesson.file_stem}"
            )
            await self.retry_policy.run(
                lambda: self.video_downloader.download(video_url, dest),
                f"Downloading {dest.name}"
            )

        logger.info(f"Downloaded {dest}")
        if progress is not None:
            progress.videos_completed += 1
            self._report(progress)

    async def _download_subtitle(self, lesson: LessonInfo, course_dir: Path,
                                 progress: Optional[DownloadProgress]) -> None:
        dest = self.subtitle_path(lesson, course_dir)

        async with self.download_semaphore:
            try:
                await self.retry_policy.run(
                    lambda: self.file_downloader.download(lesson.vtt, dest),
                    f"Downloading {dest.name}"
                )
            except NetworkError as e:
                # Statuses the retry policy gave up on, normally 404 and friends
                log_with_context(logger, logging.WARNING, f"Subtitle unavailable for {lesson.file_stem}: {e}", {
                    'url': lesson.vtt,
                    'status_code': e.status_code
                })
                return

        if progress is not None:
            progress.subtitles_completed += 1
            self._report(progress)
