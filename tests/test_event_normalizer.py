"""
Event normalizer tests: the body is only decoded after authentication.
"""
from unittest.mock import MagicMock

import pytest

from tubehub.core.exceptions import AuthException, DecodeException
from tubehub.models.domain import EventKind, NormalizedEvent
from tubehub.services.event_normalizer import EventNormalizer


@pytest.fixture
def adapter():
    adapter = MagicMock()
    adapter.name = "mux"
    adapter.decode_webhook.return_value = NormalizedEvent(
        kind=EventKind.READY, provider="mux", raw_type="video.asset.ready", asset_ref="asset-1"
    )
    return adapter


def test_verifies_then_decodes(adapter):
    event = EventNormalizer(adapter).normalize(b"{}", {"mux-signature": "t=1,v1=00"})

    assert event.kind is EventKind.READY
    adapter.verify_webhook.assert_called_once_with(b"{}", {"mux-signature": "t=1,v1=00"})
    adapter.decode_webhook.assert_called_once_with(b"{}")


def test_rejected_signature_never_decodes(adapter):
    adapter.verify_webhook.side_effect = AuthException("signature mismatch")

    with pytest.raises(AuthException):
        EventNormalizer(adapter).normalize(b"{}", {})

    adapter.decode_webhook.assert_not_called()


def test_decode_errors_propagate(adapter):
    adapter.decode_webhook.side_effect = DecodeException("missing 'type' or 'data'")

    with pytest.raises(DecodeException):
        EventNormalizer(adapter).normalize(b"{}", {})


def test_unhandled_events_pass_through(adapter):
    adapter.decode_webhook.return_value = NormalizedEvent(
        kind=EventKind.UNHANDLED, provider="mux", raw_type="video.asset.track.ready"
    )

    event = EventNormalizer(adapter).normalize(b"{}", {})

    assert event.kind is EventKind.UNHANDLED
