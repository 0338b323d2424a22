"""Per-delivery resolution sent back to the broker."""

from enum import Enum


class DeliveryOutcome(Enum):
    ACKNOWLEDGED = "acknowledged"
    REJECTED_NO_REQUEUE = "rejected_no_requeue"
    REJECTED_REQUEUE = "rejected_requeue"

    @property
    def requeue(self) -> bool:
        return self is DeliveryOutcome.REJECTED_REQUEUE
