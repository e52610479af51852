from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace
from typing import Any, Optional, Sequence

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from remote_webdriver.element import W3C_ELEMENT_KEY, Element
from remote_webdriver.errors import WebDriverError
from remote_webdriver.models import Capabilities
from remote_webdriver.server import Server
from remote_webdriver.session import Session


def _no_such_element(value: str) -> WebDriverError:
    return WebDriverError(f"Unable to locate {value!r}", name="NoSuchElement", status=7)


class FakeElement(Element):
    """Element answering from memory, optionally after a delay or with an error."""

    def __init__(
        self,
        element_id: str,
        session: "FakeSession",
        *,
        text: str = "",
        delay: float = 0.0,
        error: Optional[Exception] = None,
        children: Optional[dict[str, list["FakeElement"]]] = None,
    ) -> None:
        super().__init__(element_id, session)
        self.text = text
        self.delay = delay
        self.error = error
        self.children = children or {}
        self.clicks = 0

    async def _act(self, name: str) -> None:
        await asyncio.sleep(self.delay)
        self.session.record(f"{name}:{self.element_id}")
        if self.error is not None:
            raise self.error

    async def get_visible_text(self) -> str:
        await self._act("text")
        return self.text

    async def click(self) -> None:
        await self._act("click")
        self.clicks += 1

    async def get_tag_name(self) -> str:
        await self._act("tag")
        return "div"

    async def find(self, using: str, value: str) -> Element:
        matches = self.children.get(value)
        if not matches:
            raise _no_such_element(value)
        return matches[0]

    async def find_all(self, using: str, value: str) -> list[Element]:
        return list(self.children.get(value, []))


class FakeSession(Session):
    """Session whose page is a dict of selector -> elements.

    Wire requests are recorded instead of sent; every operation appends an
    ``(event, loop time)`` pair to :attr:`events`.
    """

    def __init__(self) -> None:
        super().__init__("fake-session", SimpleNamespace(max_concurrent_requests=1), Capabilities())
        self.page: dict[str, list[FakeElement]] = {}
        self.events: list[tuple[str, float]] = []
        self.requests: list[tuple[str, str, Any]] = []
        self.delays: dict[str, float] = {}
        self.script_results: list[Any] = []
        self.scripts: list[tuple[str, list[Any]]] = []
        self.active: Optional[FakeElement] = None
        self.title = "Fake page"
        self.url: Optional[str] = None
        self.mouse: list[Any] = []

    def record(self, event: str) -> None:
        self.events.append((event, asyncio.get_running_loop().time()))

    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]

    def element(self, element_id: str, **kwargs: Any) -> FakeElement:
        return FakeElement(element_id, self, **kwargs)

    async def _step(self, name: str) -> None:
        await asyncio.sleep(self.delays.get(name, 0.0))
        self.record(name)

    async def _request(self, method: str, path: str, request_data: Any, path_parts: Sequence[Any]) -> Any:
        self.requests.append((method, path, request_data))
        return None

    async def get(self, url: str) -> None:
        await self._step("get")
        self.url = url

    async def get_page_title(self) -> str:
        await self._step("title")
        return self.title

    async def get_current_url(self) -> Optional[str]:
        await self._step("url")
        return self.url

    async def find(self, using: str, value: str) -> Element:
        await self._step(f"find:{value}")
        matches = self.page.get(value)
        if not matches:
            raise _no_such_element(value)
        return matches[0]

    async def find_all(self, using: str, value: str) -> list[Element]:
        await self._step(f"find_all:{value}")
        return list(self.page.get(value, []))

    async def get_active_element(self) -> Element:
        await self._step("active")
        if self.active is None:
            raise _no_such_element("active element")
        return self.active

    async def execute(self, script: str, args: Sequence[Any] = ()) -> Any:
        self.scripts.append((script, list(args)))
        await self._step("execute")
        result = self.script_results.pop(0) if self.script_results else None
        if isinstance(result, Exception):
            raise result
        return result

    async def move_mouse_to(
        self,
        element: Optional[Element] = None,
        x_offset: Optional[float] = None,
        y_offset: Optional[float] = None,
    ) -> None:
        await self._step("move")
        self.mouse.append((element.element_id if element else None, x_offset, y_offset))


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


class FakeRemote:
    """In-process WebDriver remote end served over ``httpx.ASGITransport``."""

    base_url = "http://remote.test/wd/hub"

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, Any]] = []
        self.w3c = False
        self.title = "Remote page"
        self.app = FastAPI()
        self._register_routes()

    def transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)

    def server(self, **kwargs: Any) -> Server:
        return Server(self.base_url, transport=self.transport(), **kwargs)

    async def _log(self, request: Request) -> Any:
        payload = await request.json() if request.method == "POST" else None
        self.requests.append((request.method, request.url.path, payload))
        return payload

    def _register_routes(self) -> None:
        app = self.app

        @app.get("/wd/hub/status")
        async def status(request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": {"ready": True, "build": {"version": "test"}}}

        @app.get("/wd/hub/sessions")
        async def sessions(request: Request) -> dict[str, Any]:
            await self._log(request)
            return {
                "status": 0,
                "value": [{"id": "abc", "capabilities": {"browserName": "chrome", "version": "1.0"}}],
            }

        @app.post("/wd/hub/session")
        async def new_session(request: Request) -> dict[str, Any]:
            payload = await self._log(request)
            browser = payload["desiredCapabilities"].get("browserName")
            if self.w3c:
                return {"value": {"sessionId": "w3c-1", "capabilities": {"browserName": browser, "version": "2.0"}}}
            return {"status": 0, "sessionId": "abc", "value": {"browserName": browser, "version": "1.0"}}

        @app.delete("/wd/hub/session/{session_id}")
        async def delete_session(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": None}

        @app.post("/wd/hub/session/{session_id}/url")
        async def navigate(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": None}

        @app.get("/wd/hub/session/{session_id}/title")
        async def title(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": self.title}

        @app.post("/wd/hub/session/{session_id}/timeouts")
        async def timeouts(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": None}

        @app.get("/wd/hub/session/{session_id}/screenshot")
        async def screenshot(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": base64.b64encode(b"PNG").decode("ascii")}

        @app.post("/wd/hub/session/{session_id}/execute")
        async def execute(session_id: str, request: Request) -> Any:
            payload = await self._log(request)
            if "throw" in payload["script"]:
                return JSONResponse(status_code=500, content={"status": 17, "value": {"message": "boom"}})
            return {"status": 0, "value": payload["args"]}

        @app.post("/wd/hub/session/{session_id}/element")
        async def find(session_id: str, request: Request) -> Any:
            payload = await self._log(request)
            if payload["value"] == "h1":
                return {"status": 0, "value": {"ELEMENT": "heading"}}
            return JSONResponse(
                status_code=404,
                content={"value": {"error": "no such element", "message": f"No match for {payload['value']}"}},
            )

        @app.post("/wd/hub/session/{session_id}/elements")
        async def find_all(session_id: str, request: Request) -> dict[str, Any]:
            payload = await self._log(request)
            if payload["value"] == "p":
                return {"status": 0, "value": [{"ELEMENT": "p1"}, {W3C_ELEMENT_KEY: "p2"}]}
            return {"status": 0, "value": []}

        @app.get("/wd/hub/session/{session_id}/element/{element_id}/text")
        async def text(session_id: str, element_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": f"text of {element_id}"}

        @app.post("/wd/hub/session/{session_id}/element/{element_id}/click")
        async def click(session_id: str, element_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": None}

        @app.post("/wd/hub/session/{session_id}/touch/{action}")
        async def touch(session_id: str, action: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": None}

        @app.api_route("/wd/hub/session/{session_id}/orientation", methods=["GET", "POST"])
        async def orientation(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": "LANDSCAPE"}

        @app.api_route("/wd/hub/session/{session_id}/ime/{action}", methods=["GET", "POST"])
        async def ime(session_id: str, action: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            values = {"available_engines": ["anthy"], "active_engine": "anthy", "activated": True}
            return {"status": 0, "value": values.get(action)}

        @app.get("/wd/hub/session/{session_id}/application_cache/status")
        async def application_cache(session_id: str, request: Request) -> dict[str, Any]:
            await self._log(request)
            return {"status": 0, "value": 1}


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()
