"""Course discovery and lesson listing for femdown."""

import logging
import re
from typing import Any, Dict, List
from urllib.parse import urlparse

import validators
from bs4 import BeautifulSoup

from femdown.models import LessonInfo, VIDEO_FORMATS, RESOLUTION_TIERS
from femdown.api_client import FemApiClient
from femdown.exceptions import InvalidCourseIdError, ParseError, VideoSourceError
from femdown.logging_config import get_logger, log_with_context, performance_timer

logger = get_logger(__name__)

COURSE_ID_RE = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')


def parse_course_id(value: str) -> str:
    """Turn a course id or course URL into a course id.

    Accepts ``react-v8``, ``/react-v8/`` and
    ``https://frontendmasters.com/courses/react-v8/``.

    Raises:
        InvalidCourseIdError: If no valid id can be extracted.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidCourseIdError("Course id must be a non-empty string", field_name='course_id',
                                   field_value=value)

    candidate = value.strip()
    if validators.url(candidate):
        candidate = urlparse(candidate).path

    candidate = candidate.strip('/').rsplit('/', 1)[-1]
    if not COURSE_ID_RE.match(candidate):
        raise InvalidCourseIdError(f"Course id is invalid: {value}", field_name='course_id',
                                   field_value=value)
    return candidate


class CourseManager:
    """Lists courses and lessons and resolves lesson video URLs."""

    def __init__(self, api_client: FemApiClient):
        """Initialize course manager.

        Args:
            api_client: Authenticated client for making requests.
        """
        self.api_client = api_client
        self.endpoints = api_client.config.endpoints

    async def get_course_ids(self) -> List[str]:
        """Return the ids of every course on the course listing page, in page order."""
        url = self.endpoints['course_list']
        with performance_timer("get_course_ids", logger):
            html = await self.api_client.get_text(url)

        soup = BeautifulSoup(html, 'html.parser')
        course_ids = []
        for item in soup.select('.MediaItem'):
            course_id = item.get('id')
            if course_id and course_id not in course_ids:
                course_ids.append(course_id)

        if not course_ids:
            raise ParseError("No courses found on course listing page", content_type='html', url=url)

        log_with_context(logger, logging.INFO, "Found courses", {'count': len(course_ids)})
        return course_ids

    async def get_lesson_infos(self, course_id: str) -> List[LessonInfo]:
        """Return the lessons of a course sorted by ascending index.

        Raises:
            ParseError: If the lesson data is malformed or indexes repeat.
        """
        url = self.endpoints['course_detail'].format(course_id=course_id)
        with performance_timer("get_lesson_infos", logger):
            data = await self.api_client.get_json(url)

        lessons = self._parse_lessons(data, course_id, url)

        log_with_context(logger, logging.INFO, "Listed lessons", {
            'course_id': course_id,
            'lessons': len(lessons),
            'subtitles': sum(1 for lesson in lessons if lesson.has_subtitles)
        })
        return lessons

    def _parse_lessons(self, data: Any, course_id: str, url: str) -> List[LessonInfo]:
        if not isinstance(data, dict) or 'lessonData' not in data:
            raise ParseError("Course data has no lessonData", content_type='json', url=url)

        lesson_data = data['lessonData']
        if isinstance(lesson_data, dict):
            records = list(lesson_data.values())
        elif isinstance(lesson_data, list):
            records = lesson_data
        else:
            raise ParseError("lessonData must be an object or list", content_type='json', url=url)

        has_vtt = bool(data.get('hasWebVTT'))
        date_published = data.get('datePublished')
        if has_vtt and not date_published:
            raise ParseError("Course has subtitles but no datePublished", content_type='json', url=url)

        try:
            records = sorted(records, key=lambda record: record['index'])
        except (KeyError, TypeError) as e:
            raise ParseError(f"Lesson record without a usable index: {e}", content_type='json', url=url)

        lessons = []
        seen = set()
        for record in records:
            index = record['index']
            if index in seen:
                raise ParseError(f"Duplicate lesson index {index}", content_type='json', url=url,
                                 details={'course_id': course_id})
            seen.add(index)
            lessons.append(self._build_lesson(record, course_id, date_published if has_vtt else None, url))

        return lessons

    def _build_lesson(self, record: Dict[str, Any], course_id: str, date_published, url: str) -> LessonInfo:
        try:
            slug = record['slug']
            vtt = None
            if date_published:
                vtt = self.endpoints['subtitles'].format(
                    date_published=date_published,
                    course_id=course_id,
                    index=record['index'],
                    slug=slug
                )
            return LessonInfo(src=record['sourceBase'], slug=slug, index=record['index'], vtt=vtt)
        except (KeyError, ValueError) as e:
            raise ParseError(f"Malformed lesson record: {e}", content_type='json', url=url,
                             details={'course_id': course_id})

    async def get_lesson_video_url(self, src: str, video_format: str = "mp4", resolution: int = 720) -> str:
        """Ask the lesson's source endpoint for a playable video URL.

        Raises:
            VideoSourceError: If the endpoint answers with a message instead of a URL.
        """
        if video_format not in VIDEO_FORMATS:
            raise ValueError(f"Invalid video format: {video_format}")
        if resolution not in RESOLUTION_TIERS.values():
            raise ValueError(f"Invalid resolution: {resolution}")

        url = f"{src}/source"
        data = await self.api_client.get_json(url, params={'r': resolution, 'f': video_format})

        if not isinstance(data, dict):
            raise VideoSourceError("Unexpected video source response", content_type='json', url=url)
        if data.get('message'):
            raise VideoSourceError(data['message'], content_type='json', url=url)
        if not data.get('url'):
            raise VideoSourceError("Video source response has no url", content_type='json', url=url)

        return data['url']
