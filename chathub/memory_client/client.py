from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..config import Settings, get_settings

HonchoBaseURL = "http://localhost:8000"


class MemoryServiceError(RuntimeError):
    """Raised when the memory service is unreachable or returns an error response."""


class MemoryService(Protocol):
    """Peer-scoped conversational memory used by the hub."""

    session_id: str

    async def open_session(self) -> None: ...

    async def register_peer(
        self,
        peer: str,
        *,
        observe_me: Optional[bool] = None,
        observe_others: bool = False,
    ) -> Dict[str, Any]: ...

    async def remove_peer(self, peer: str) -> None: ...

    async def set_peer_config(self, peer: str, *, observe_me: bool, observe_others: bool = False) -> None: ...

    async def ingest_message(self, peer: str, content: str) -> None: ...

    async def get_summary(self, *, tokens: int) -> Optional[str]: ...

    async def ask_peer(self, peer: str, question: str, *, target: Optional[str] = None) -> str: ...

    async def list_messages(self) -> List[Dict[str, Any]]: ...


def _handle_response_error(exc: httpx.HTTPStatusError) -> None:
    response = exc.response
    detail: str
    try:
        payload = response.json()
        detail = payload.get("detail") or payload.get("error") or json.dumps(payload)
    except Exception:
        detail = response.text
    raise MemoryServiceError(f"Memory service request failed ({response.status_code}): {detail}") from exc


class HonchoMemoryService:
    """Memory service client speaking the Honcho v2 REST API."""

    def __init__(
        self,
        *,
        session_id: str,
        base_url: str = HonchoBaseURL,
        workspace_id: str = "default",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.session_id = session_id
        self._base_url = base_url.rstrip("/")
        self._workspace_id = workspace_id
        self._api_key = (api_key or "").strip() or None
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, *, session_id: str) -> "HonchoMemoryService":
        settings = settings or get_settings()
        return cls(
            session_id=session_id,
            base_url=settings.memory_base_url,
            workspace_id=settings.memory_workspace_id,
            api_key=settings.memory_api_key,
            timeout=settings.memory_timeout_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _workspace_url(self, path: str) -> str:
        return f"{self._base_url}/v2/workspaces/{self._workspace_id}{path}"

    def _session_url(self, path: str = "") -> str:
        return self._workspace_url(f"/sessions/{self.session_id}{path}")

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    headers=self._headers(),
                    json=json_body,
                    params=params,
                    timeout=self._timeout,
                )
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as exc:
                    _handle_response_error(exc)
                if not response.content:
                    return None
                return response.json()
            except httpx.HTTPStatusError as exc:  # pragma: no cover - handled above
                _handle_response_error(exc)
            except httpx.HTTPError as exc:
                raise MemoryServiceError(f"Memory service request failed: {exc}") from exc
            except ValueError as exc:
                raise MemoryServiceError(f"Memory service returned invalid JSON: {exc}") from exc

        raise MemoryServiceError("Memory service request failed: unknown error")

    async def open_session(self) -> None:
        """Get or create the upstream session this hub writes into."""
        await self._request("POST", self._workspace_url("/sessions"), json_body={"id": self.session_id})

    async def register_peer(
        self,
        peer: str,
        *,
        observe_me: Optional[bool] = None,
        observe_others: bool = False,
    ) -> Dict[str, Any]:
        """Get or create *peer*, add it to the session and return its stored configuration."""

        body: Dict[str, Any] = {"id": peer}
        if observe_me is not None:
            body["configuration"] = {"observe_me": observe_me}
        record = await self._request("POST", self._workspace_url("/peers"), json_body=body)
        configuration = dict((record or {}).get("configuration") or {})

        session_observe_me = observe_me
        if session_observe_me is None:
            stored = configuration.get("observe_me")
            session_observe_me = stored if isinstance(stored, bool) else True
        await self._request(
            "POST",
            self._session_url("/peers"),
            json_body={peer: {"observe_me": session_observe_me, "observe_others": observe_others}},
        )
        return configuration

    async def remove_peer(self, peer: str) -> None:
        await self._request("DELETE", self._session_url("/peers"), json_body=[peer])

    async def set_peer_config(self, peer: str, *, observe_me: bool, observe_others: bool = False) -> None:
        await self._request(
            "PUT",
            self._workspace_url(f"/peers/{peer}"),
            json_body={"configuration": {"observe_me": observe_me, "observe_others": observe_others}},
        )

    async def ingest_message(self, peer: str, content: str) -> None:
        await self._request(
            "POST",
            self._session_url("/messages"),
            json_body={"messages": [{"peer_id": peer, "content": content}]},
        )

    async def get_summary(self, *, tokens: int) -> Optional[str]:
        """Return the session summary text, or ``None`` when none is available yet."""

        payload = await self._request(
            "GET",
            self._session_url("/context"),
            params={"tokens": tokens, "summary": "true"},
        )
        summary = (payload or {}).get("summary") or {}
        if isinstance(summary, str):
            content = summary
        else:
            content = summary.get("content") or ""
        content = content.strip()
        return content or None

    async def ask_peer(self, peer: str, question: str, *, target: Optional[str] = None) -> str:
        body: Dict[str, Any] = {"query": question, "session_id": self.session_id, "stream": False}
        if target:
            body["target"] = target
        payload = await self._request("POST", self._workspace_url(f"/peers/{peer}/chat"), json_body=body)
        if isinstance(payload, str):
            return payload
        return str((payload or {}).get("content") or "")

    async def list_messages(self) -> List[Dict[str, Any]]:
        payload = await self._request("POST", self._session_url("/messages/list"), json_body={})
        items = (payload or {}).get("items") or []
        return [item for item in items if isinstance(item, dict)]


__all__ = ["HonchoBaseURL", "HonchoMemoryService", "MemoryService", "MemoryServiceError"]
