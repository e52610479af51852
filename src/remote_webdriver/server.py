"""HTTP transport for a remote WebDriver server."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from .config import DEFAULT_SERVER_URL, ServerConfig
from .element import PLACEHOLDER
from .errors import RequestInfo, WebDriverError
from .models import Capabilities
from .session import Session

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[str, "Server", Capabilities], Session]


def expand_path(path: str, path_parts: Sequence[Any] = ()) -> str:
    """Replace ``$n`` placeholders in *path* with URL-encoded ``path_parts``."""

    def _replace(match: re.Match[str]) -> str:
        index = int(match.group(1))
        try:
            part = path_parts[index]
        except IndexError as exc:
            raise ValueError(f"Missing value for placeholder ${index} in {path!r}") from exc
        return quote(str(part), safe="")

    return PLACEHOLDER.sub(_replace, path)


class Server:
    """A remote HTTP server implementing the WebDriver wire protocol.

    The server is used to create new remote control sessions and provides the
    request primitives that every :class:`Session` and
    :class:`~remote_webdriver.element.Element` operation is built on.
    """

    def __init__(
        self,
        url: str = DEFAULT_SERVER_URL,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session_factory: Optional[SessionFactory] = None,
        max_concurrent_requests: int = 1,
    ) -> None:
        self.url = url.rstrip("/") + "/"
        self.session_factory: SessionFactory = session_factory or Session
        self.max_concurrent_requests = max_concurrent_requests
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json;charset=utf-8",
            },
        )

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Server":
        return cls(
            config.url,
            timeout=config.request_timeout,
            transport=transport,
            max_concurrent_requests=config.max_concurrent_requests,
        )

    async def __aenter__(self) -> "Server":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Request primitives ------------------------------------------------------

    async def _get(
        self,
        path: str,
        request_data: Any = None,
        path_parts: Sequence[Any] = (),
    ) -> dict[str, Any]:
        return await self._request("GET", path, request_data, path_parts)

    async def _post(
        self,
        path: str,
        request_data: Any = None,
        path_parts: Sequence[Any] = (),
    ) -> dict[str, Any]:
        return await self._request("POST", path, request_data, path_parts)

    async def _delete(
        self,
        path: str,
        request_data: Any = None,
        path_parts: Sequence[Any] = (),
    ) -> dict[str, Any]:
        return await self._request("DELETE", path, request_data, path_parts)

    async def _request(
        self,
        method: str,
        path: str,
        request_data: Any,
        path_parts: Sequence[Any],
    ) -> dict[str, Any]:
        url = self.url + expand_path(path, path_parts)
        request = RequestInfo(method=method, url=url, data=request_data)
        LOGGER.debug("%s %s %s", method, url, request_data)
        kwargs: dict[str, Any] = {}
        if method == "POST":
            kwargs["json"] = request_data if request_data is not None else {}
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise WebDriverError(
                str(exc) or type(exc).__name__,
                name="UnknownError",
                request=request,
            ) from exc
        return _normalise_response(response, request)

    # Server commands ---------------------------------------------------------

    async def get_status(self) -> dict[str, Any]:
        """Return the arbitrary status object reported by the remote server."""

        body = await self._get("status")
        return body.get("value") or {}

    async def create_session(
        self,
        desired_capabilities: Mapping[str, Any],
        required_capabilities: Optional[Mapping[str, Any]] = None,
    ) -> Session:
        """Create a new remote control session.

        The server may return an environment that does not match every desired
        capability; it will refuse to create a session that does not match the
        required ones.
        """

        payload: dict[str, Any] = {"desiredCapabilities": dict(desired_capabilities)}
        if required_capabilities:
            payload["requiredCapabilities"] = dict(required_capabilities)
        body = await self._post("session", payload)
        session_id = body.get("sessionId")
        value = body.get("value") or {}
        if not session_id and isinstance(value, Mapping):
            session_id = value.get("sessionId")
            value = value.get("capabilities") or {}
        if not session_id:
            raise WebDriverError(
                "Remote end did not return a session ID",
                name="SessionNotCreatedException",
                status=33,
                detail=body,
            )
        capabilities = Capabilities.model_validate(
            {**dict(desired_capabilities), **dict(value)}
        )
        LOGGER.info(
            "Created session %s (%s)",
            session_id,
            capabilities.browser_name or "unknown browser",
        )
        return self.session_factory(str(session_id), self, capabilities)

    async def get_sessions(self) -> list[dict[str, Any]]:
        """Return all sessions currently active on the server."""

        body = await self._get("sessions")
        return list(body.get("value") or [])

    async def get_session_capabilities(self, session_id: str) -> Capabilities:
        body = await self._get("session/$0", None, [session_id])
        return Capabilities.model_validate(body.get("value") or {})

    async def delete_session(self, session_id: str) -> None:
        LOGGER.info("Deleting session %s", session_id)
        await self._delete("session/$0", None, [session_id])


def _normalise_response(response: httpx.Response, request: RequestInfo) -> dict[str, Any]:
    body: Any = None
    if response.content:
        try:
            body = response.json()
        except ValueError:
            body = None

    if not isinstance(body, dict):
        if response.is_error:
            raise WebDriverError(
                response.text or response.reason_phrase,
                name="UnknownCommand" if response.status_code in {404, 405} else "UnknownError",
                status=response.status_code,
                detail=body,
                request=request,
            )
        return {"status": 0, "value": body}

    value = body.get("value")
    if response.is_error and isinstance(value, Mapping) and "error" in value:
        raise WebDriverError.from_w3c(
            str(value["error"]),
            value.get("message"),
            status=response.status_code,
            detail=value,
            request=request,
        )

    status = body.get("status")
    if isinstance(status, int) and status != 0:
        message = value.get("message") if isinstance(value, Mapping) else None
        raise WebDriverError.from_status(status, message, detail=value, request=request)

    if response.is_error:
        raise WebDriverError(
            response.reason_phrase or "Request failed",
            name="UnknownCommand" if response.status_code in {404, 405} else "UnknownError",
            status=response.status_code,
            detail=value,
            request=request,
        )
    return body
