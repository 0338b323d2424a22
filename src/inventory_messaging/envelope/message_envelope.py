"""The validated unit of work exchanged between publisher and consumer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from inventory_messaging.errors import ValidationError


@dataclass(frozen=True)
class MessageEnvelope:
    """An inventory message about a single item.

    Construction does not validate; use :func:`validate_envelope` before handing an
    envelope to the broker or to application logic.
    """

    item_id: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"item_id": self.item_id, "text": self.text}


def validate_envelope(candidate: Any) -> MessageEnvelope:
    """Return ``candidate`` as a :class:`MessageEnvelope` or raise :class:`ValidationError`.

    ``candidate`` may be an envelope or a mapping decoded from the wire. Keys other
    than ``item_id`` and ``text`` are ignored.
    """
    if isinstance(candidate, MessageEnvelope):
        fields: Mapping[str, Any] = candidate.to_dict()
    elif isinstance(candidate, Mapping):
        fields = candidate
    else:
        raise ValidationError("Message must be an object")

    item_id = fields.get("item_id")
    if not isinstance(item_id, str) or not item_id:
        raise ValidationError("Message must contain a non-empty string item_id")

    text = fields.get("text")
    if not isinstance(text, str) or not text:
        raise ValidationError("Message must contain a non-empty string text")

    return MessageEnvelope(item_id=item_id, text=text)


def is_valid_envelope(candidate: Any) -> bool:
    try:
        validate_envelope(candidate)
    except ValidationError:
        return False
    return True
