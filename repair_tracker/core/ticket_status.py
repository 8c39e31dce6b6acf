"""Shared repair ticket status constants and helpers."""

STATUS_RECEIVED = "received"
STATUS_DIAGNOSING = "diagnosing"
STATUS_WAITING_PARTS = "waiting-parts"
STATUS_ON_HOLD = "on-hold"
STATUS_COMPLETED = "completed"

STATUS_CHOICES = (
    STATUS_RECEIVED,
    STATUS_DIAGNOSING,
    STATUS_WAITING_PARTS,
    STATUS_ON_HOLD,
    STATUS_COMPLETED,
)

# Everything except completed still occupies the bench.
OPEN_STATUSES = {
    STATUS_RECEIVED,
    STATUS_DIAGNOSING,
    STATUS_WAITING_PARTS,
    STATUS_ON_HOLD,
}

STATUS_LABELS = {
    STATUS_RECEIVED: "Received",
    STATUS_DIAGNOSING: "Diagnosing",
    STATUS_WAITING_PARTS: "Waiting for Parts",
    STATUS_ON_HOLD: "On Hold",
    STATUS_COMPLETED: "Completed",
}


def normalize_status(value: str | None) -> str:
    """Return a lowercase, hyphenated status with a safe default."""

    normalized = (value or STATUS_RECEIVED).strip().lower().replace("_", "-").replace(" ", "-")
    return normalized or STATUS_RECEIVED


__all__ = [
    "OPEN_STATUSES",
    "STATUS_CHOICES",
    "STATUS_COMPLETED",
    "STATUS_DIAGNOSING",
    "STATUS_LABELS",
    "STATUS_ON_HOLD",
    "STATUS_RECEIVED",
    "STATUS_WAITING_PARTS",
    "normalize_status",
]
