from __future__ import annotations

from typing import Any, Optional, Protocol


class Outbound(Protocol):
    """Server-to-client delivery. ``to`` targets one connection; otherwise all except ``skip_sid``.

    ``socketio.AsyncServer`` satisfies this directly.
    """

    async def emit(
        self,
        event: str,
        data: Any = None,
        to: Optional[str] = None,
        skip_sid: Optional[str] = None,
    ) -> Any:  # pragma: no cover - typing protocol
        ...


__all__ = ["Outbound"]
