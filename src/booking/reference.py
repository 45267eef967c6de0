"""Display-only booking references for when the server does not issue one."""

import secrets
import string
import time
from typing import Optional

from src.config import settings

_ALPHABET = string.digits + string.ascii_uppercase  # base36, upper-cased


def generate_booking_reference(prefix: Optional[str] = None, now_ms: Optional[int] = None) -> str:
    """``RO-<last 6 digits of epoch millis>-<6 random base36 chars>``.

    Never authoritative: it only labels the confirmation screen.
    """
    millis = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{prefix or settings.reference_prefix}-{str(millis)[-6:].zfill(6)}-{suffix}"
