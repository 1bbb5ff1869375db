"""Field rules for announcements, photos and videos"""

import re
from urllib.parse import urlparse

from ...core.errors import ValidationError

TITLE_MAX = 100
MEDIA_TITLE_MAX = 100
DESCRIPTION_MAX = 500

VIDEO_SOURCES = ('upload', 'youtube')

# watch?v=, embed/, v/, e/, /<user>/<id> and youtu.be short links
YOUTUBE_RE = re.compile(
    r'^(?:https?://)?(?:www\.)?'
    r'(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)'
    r'([^"&?/\s]{11})',
    re.IGNORECASE,
)
EMBED_URL_RE = re.compile(r'^https://www\.youtube\.com/embed/[^"&?/\s]{11}$')

VIDEO_HOSTS = ('youtube.com', 'youtu.be', 'vimeo.com')
IMAGE_PATH_RE = re.compile(r'\.(jpeg|jpg|gif|png)$', re.IGNORECASE)

SCHEME_RE = re.compile(r'^[a-z][a-z0-9+.-]*:', re.IGNORECASE)

TRUE_VALUES = ('1', 'true', 'on', 'yes')

# camelCase names JSON clients send -> stored field names
FIELD_ALIASES = {
    'youtubeUrl': 'youtube_url',
    'isFeatured': 'is_featured',
    'isActive': 'is_active',
    'mediaTitle': 'media_title',
    'mediaDescription': 'media_description',
    'mediaUrl': 'media_url',
}


def normalize_fields(fields):
    """Map camelCase aliases onto field names; an explicit snake_case field wins"""
    normalized = dict(fields or {})
    for alias, name in FIELD_ALIASES.items():
        if alias in normalized:
            value = normalized.pop(alias)
            normalized.setdefault(name, value)
    return normalized


def parse_bool(value, default=False):
    """Checkbox / JSON flag to bool. A missing field keeps the default."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def clean_text(value):
    if value is None:
        return None
    return str(value).strip()


def parse_youtube_id(url):
    match = YOUTUBE_RE.match((url or '').strip())
    return match.group(1) if match else None


def youtube_embed_url(url):
    """Normalize any recognised YouTube URL to its embed form, or raise"""
    video_id = parse_youtube_id(url)
    if video_id is None:
        raise ValidationError('Invalid YouTube URL')
    return f"https://www.youtube.com/embed/{video_id}"


def is_embed_url(url):
    return bool(EMBED_URL_RE.match(url or ''))


def normalize_url(url):
    """Give scheme-less links such as www.example.com/pic.png an https:// prefix"""
    if url and not SCHEME_RE.match(url):
        return f"https://{url}"
    return url


def is_valid_url(url):
    parsed = urlparse(url or '')
    return parsed.scheme in ('http', 'https') and '.' in (parsed.hostname or '')


def infer_media_type(url):
    """Classify a media URL by its shape: known video hosts, then image extensions"""
    if not url:
        return None
    parsed = urlparse(url)
    host = (parsed.hostname or '').lower()
    if any(host == h or host.endswith('.' + h) for h in VIDEO_HOSTS):
        return 'video'
    if IMAGE_PATH_RE.search(parsed.path):
        return 'image'
    return None


def require(value, label):
    if not value:
        raise ValidationError(f"{label} is required")
    return value


def max_length(value, limit, label):
    if value and len(value) > limit:
        raise ValidationError(f"{label} cannot exceed {limit} characters")
    return value
