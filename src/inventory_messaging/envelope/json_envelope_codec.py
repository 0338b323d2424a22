"""JSON implementation of the envelope codec."""

from __future__ import annotations

import json
from typing import Any

from inventory_messaging.contracts import IEnvelopeCodec
from inventory_messaging.errors import InvalidContentError

from .message_envelope import MessageEnvelope


class JSONEnvelopeCodec(IEnvelopeCodec):
    """Encodes envelopes as UTF-8 JSON objects with ``item_id`` and ``text`` fields."""

    content_type = "application/json"

    def encode(self, envelope: MessageEnvelope) -> bytes:
        return json.dumps(envelope.to_dict()).encode("utf-8")

    def decode(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise InvalidContentError("Message payload is not valid UTF-8.") from exc
        except json.JSONDecodeError as exc:
            raise InvalidContentError("Failed to decode message payload as JSON.") from exc
        except (ValueError, RecursionError) as exc:
            raise InvalidContentError(
                f"Message payload exceeds JSON decoding limits: {exc}"
            ) from exc
