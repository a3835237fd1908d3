"""Media authenticity gate."""

import pytest

from civicdesk.media import (REASON_INVALID, REASON_NO_MEDIA, REASON_TOO_SMALL,
                             HeuristicMediaGate, MediaAssessment, decoded_size)
from civicdesk.models import Media, MediaKind

from conftest import photo


@pytest.fixture
def gate():
    return HeuristicMediaGate(min_photo_bytes=10_000)


class TestMediaGate:
    def test_no_media_rejected(self, gate):
        assert gate(None) == MediaAssessment(False, REASON_NO_MEDIA)

    def test_small_photo_rejected(self, gate):
        assert gate(photo(9_999)) == MediaAssessment(False, REASON_TOO_SMALL)

    def test_photo_at_threshold_accepted(self, gate):
        assert gate(photo(10_000)).accepted

    def test_large_photo_accepted(self, gate):
        verdict = gate(photo(50_000))
        assert verdict.accepted
        assert verdict.reason is None

    def test_small_video_accepted(self, gate):
        # the size heuristic only applies to photos
        assert gate(photo(100, kind=MediaKind.VIDEO)).accepted

    def test_invalid_base64_rejected(self, gate):
        media = Media(type=MediaKind.PHOTO, data="data:image/jpeg;base64,@@not-base64@@")
        assert gate(media) == MediaAssessment(False, REASON_INVALID)

    def test_bad_padding_rejected(self, gate):
        media = Media(type=MediaKind.VIDEO, data="abc")
        assert gate(media) == MediaAssessment(False, REASON_INVALID)

    def test_empty_data_url_payload_is_too_small(self, gate):
        media = Media(type=MediaKind.PHOTO, data="data:image/png;base64,")
        assert gate(media) == MediaAssessment(False, REASON_TOO_SMALL)

    def test_threshold_is_configurable(self):
        assert HeuristicMediaGate(min_photo_bytes=100).assess(photo(150)).accepted
        assert not HeuristicMediaGate(min_photo_bytes=200).assess(photo(150)).accepted


class TestDecodedSize:
    def test_data_url(self):
        assert decoded_size("data:text/plain;base64,aGVsbG8=") == 5

    def test_bare_base64(self):
        assert decoded_size("aGVsbG8gd29ybGQ=") == 11
