"""Response utilities."""

from typing import Any, Mapping, Optional

from fastapi.responses import JSONResponse


def error_response(message: str, *, status_code: int, detail: Optional[Any] = None) -> JSONResponse:
    """Wrap a hub-level ``{"error": ...}`` result as an HTTP error body."""
    payload = {"ok": False, "error": message}
    if detail:
        payload["detail"] = detail
    return JSONResponse(payload, status_code=status_code)


def hub_error_response(result: Mapping[str, Any], *, status_code: int) -> JSONResponse:
    return error_response(str(result["error"]), status_code=status_code, detail=result.get("detail"))
