"""Leaf downloaders: plain files over HTTP and videos through yt-dlp."""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiohttp
import yt_dlp

from .exceptions import ConnectionError, DownloadError, NetworkError, TimeoutError
from .logging_config import get_logger

logger = get_logger(__name__)


class FileDownloader:
    """Streams a URL straight to disk, replacing whatever file is there."""

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        timeout = aiohttp.ClientTimeout(total=None, connect=30, sock_read=60)
        self.session = aiohttp.ClientSession(timeout=timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()

    async def download(self, url: str, dest: Path) -> int:
        """Download ``url`` into ``dest``.

        Returns:
            Number of bytes written.

        Raises:
            NetworkError: On a non-200 status or transport failure.
            DownloadError: If the file cannot be written.
        """
        if not self.session:
            raise DownloadError("Download session not initialized", file_path=str(dest), url=url)

        written = 0
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise NetworkError(f"HTTP {response.status}: {response.reason}",
                                       status_code=response.status, url=url)

                async with aiofiles.open(dest, 'wb') as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        await f.write(chunk)
                        written += len(chunk)
        except asyncio.TimeoutError:
            raise TimeoutError("Download timed out", url=url)
        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(f"Connection failed: {e}", url=url)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Download failed: {e}", url=url)
        except OSError as e:
            raise DownloadError(f"Could not write file: {e}", file_path=str(dest), url=url)

        logger.debug(f"Saved {written} bytes to {dest}")
        return written


class VideoDownloader:
    """Hands a video URL and destination to yt-dlp.

    yt-dlp blocks, so each download runs in a worker thread.
    """

    def __init__(self, extra_options: Optional[Dict[str, Any]] = None):
        self.extra_options = extra_options or {}

    def build_options(self, dest: Path) -> Dict[str, Any]:
        options = {
            # outtmpl is a template; a literal % in the path must be escaped
            'outtmpl': str(dest).replace('%', '%%'),
            'overwrites': True,
            'quiet': True,
            'no_warnings': True,
            'noprogress': True,
            'logger': get_logger('femdown.yt_dlp'),
        }
        options.update(self.extra_options)
        return options

    async def download(self, url: str, dest: Path) -> None:
        """Download the video at ``url`` to ``dest``.

        Raises:
            DownloadError: If yt-dlp reports a failure.
        """
        await asyncio.to_thread(self._download_sync, url, dest)

    def _download_sync(self, url: str, dest: Path) -> None:
        try:
            with yt_dlp.YoutubeDL(self.build_options(dest)) as ydl:
                retcode = ydl.download([url])
        except yt_dlp.utils.DownloadError as e:
            raise DownloadError(f"yt-dlp failed: {e}", file_path=str(dest), url=url)

        if retcode:
            raise DownloadError(f"yt-dlp exited with code {retcode}", file_path=str(dest), url=url)
