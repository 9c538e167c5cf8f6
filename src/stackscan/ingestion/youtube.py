"""YouTube URL parsing."""

import re

from stackscan.errors import ValidationError

_URL_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=)([\w-]{11})"),
    re.compile(r"(?:youtu\.be/)([\w-]{11})"),
    re.compile(r"(?:youtube\.com/embed/)([\w-]{11})"),
    re.compile(r"(?:youtube\.com/v/)([\w-]{11})"),
    re.compile(r"(?:youtube\.com/shorts/)([\w-]{11})"),
    # Legacy shapes
    re.compile(r"(?:youtube\.com/user/\S+/)([\w-]{11})"),
    re.compile(r"(?:youtube\.com/(?:ytscreeningroom|sanday)\?v=)([\w-]{11})"),
]


def parse_video_id(url: str) -> str:
    """Extract the 11-character video ID from a YouTube URL.

    Supports youtube.com/watch, youtu.be, /embed/, /v/, /shorts/ and the
    legacy /user/, /ytscreeningroom and /sanday forms.

    Raises:
        ValidationError: If the URL is not a recognized YouTube shape.
    """
    for pattern in _URL_PATTERNS:
        match = pattern.search(url or "")
        if match:
            return match.group(1)
    raise ValidationError(f"Invalid YouTube link: {url!r}")


def thumbnail_url(video_id: str) -> str:
    """Full-resolution thumbnail URL for a video ID."""
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
