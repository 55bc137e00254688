from __future__ import annotations

import secrets
import time


def generate_id() -> str:
    """Return a short id whose prefix sorts by creation time."""
    return f"{time.time_ns() // 1_000_000:x}{secrets.token_hex(4)}"


__all__ = ["generate_id"]
