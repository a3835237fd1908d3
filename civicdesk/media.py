"""
Media authenticity gate.

A size heuristic standing in for a real anti-fraud classifier: photos whose
decoded payload is too small to be a genuine camera capture are rejected.
Anything callable as ``gate(media) -> MediaAssessment`` can replace it; the
lifecycle manager only looks at ``accepted``.
"""

import base64
import binascii
import logging
from typing import Callable, NamedTuple, Optional

from .config import MIN_PHOTO_BYTES
from .models import Media, MediaKind

logger = logging.getLogger(__name__)

REASON_NO_MEDIA = "no media"
REASON_TOO_SMALL = "image too small"
REASON_INVALID = "invalid media data"


class MediaAssessment(NamedTuple):
    accepted: bool
    reason: Optional[str] = None


MediaGate = Callable[[Optional[Media]], MediaAssessment]


def decoded_size(data: str) -> int:
    """Byte length of a base64 payload, with or without a ``data:`` URL prefix."""
    payload = data.split(",", 1)[1] if "," in data else data
    return len(base64.b64decode(payload, validate=True))


class HeuristicMediaGate:
    def __init__(self, min_photo_bytes: int = MIN_PHOTO_BYTES):
        self.min_photo_bytes = min_photo_bytes

    def __call__(self, media: Optional[Media]) -> MediaAssessment:
        return self.assess(media)

    def assess(self, media: Optional[Media]) -> MediaAssessment:
        if media is None:
            return MediaAssessment(False, REASON_NO_MEDIA)
        try:
            size = decoded_size(media.data)
        except (binascii.Error, ValueError) as e:
            logger.debug("Media decode failed: %s", e)
            return MediaAssessment(False, REASON_INVALID)
        if media.type == MediaKind.PHOTO and size < self.min_photo_bytes:
            return MediaAssessment(False, REASON_TOO_SMALL)
        return MediaAssessment(True)
