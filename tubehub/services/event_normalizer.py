"""
Event Normalizer - authenticates provider callbacks and maps them onto the
common event vocabulary.
"""
import logging
from typing import Mapping

from tubehub.core.exceptions import AuthException, DecodeException
from tubehub.models.domain import EventKind, NormalizedEvent
from tubehub.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Verify-then-decode front door for one provider's webhooks."""

    def __init__(self, adapter: ProviderAdapter):
        self.adapter = adapter

    def normalize(self, raw_body: bytes, headers: Mapping[str, str]) -> NormalizedEvent:
        """
        Authenticate and decode a raw callback.

        No field of the body is read before the signature check passes.

        Raises:
            AuthException: Missing, stale or invalid signature
            DecodeException: Authenticated body with an unexpected shape
        """
        try:
            self.adapter.verify_webhook(raw_body, headers)
        except AuthException as e:
            logger.warning(f"Rejected {self.adapter.name} webhook: {e.reason}")
            raise

        try:
            event = self.adapter.decode_webhook(raw_body)
        except DecodeException as e:
            logger.warning(f"Undecodable {self.adapter.name} webhook: {e.message}")
            raise

        if event.kind is EventKind.UNHANDLED:
            logger.info(f"Ignoring unhandled {self.adapter.name} event type '{event.raw_type}'")
        else:
            logger.debug(f"Normalized {self.adapter.name} webhook", extra={"context": event.log_context()})
        return event
