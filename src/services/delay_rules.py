"""Mapping from operator delay choices to physical slot shifts."""

from src.core.errors import ValidationError

# Short delays are absorbed inside the current window; longer ones re-slot
SLOT_SHIFT_HOURS: dict[int, int] = {10: 0, 30: 0, 60: 1, 90: 2}

ALLOWED_DELAY_MINUTES = tuple(SLOT_SHIFT_HOURS)


def slot_shift_hours(delay_minutes: int) -> int:
    """Return how many hours a delay moves the pickup slot.

    Raises:
        ValidationError: If the delay is not one of 10, 30, 60 or 90 minutes.
    """
    try:
        return SLOT_SHIFT_HOURS[delay_minutes]
    except KeyError:
        raise ValidationError(
            f"Delay minutes must be one of {', '.join(str(m) for m in ALLOWED_DELAY_MINUTES)}"
        ) from None
