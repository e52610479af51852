"""A live remote-control session on a WebDriver server."""

from __future__ import annotations

import asyncio
import base64
import logging
import math
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from .element import W3C_ELEMENT_KEY, Element, as_key_list, shift_placeholders, wait_for_deleted
from .models import (
    Capabilities,
    Geolocation,
    LogEntry,
    Position,
    Size,
    Strategy,
    TimeoutType,
    WebDriverCookie,
)
from .strategies import FindStrategies

if TYPE_CHECKING:
    from .server import Server

LOGGER = logging.getLogger(__name__)

# Largest integer a WebDriver timeout may hold.
MAX_TIMEOUT_MS = 2**53 - 1


def to_wire(value: Any) -> Any:
    """Convert a Python value into its JSON wire representation."""

    if isinstance(value, Element):
        return value.to_json()
    if isinstance(value, Mapping):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


def from_wire(value: Any, session: "Session") -> Any:
    """Convert element references in a wire value into :class:`Element` objects."""

    if isinstance(value, Mapping):
        if "ELEMENT" in value or W3C_ELEMENT_KEY in value:
            return Element(value, session)
        return {key: from_wire(item, session) for key, item in value.items()}
    if isinstance(value, list):
        return [from_wire(item, session) for item in value]
    return value


class Session(FindStrategies):
    """A connection to a remote environment that can be driven programmatically."""

    def __init__(self, session_id: str, server: "Server", capabilities: Capabilities) -> None:
        self.session_id = session_id
        self.server = server
        self.capabilities = capabilities
        self._semaphore = asyncio.Semaphore(getattr(server, "max_concurrent_requests", 1))
        # JsonWire offers no way to read timeouts back, so the last values set are cached.
        self._timeouts: dict[str, float] = {
            TimeoutType.SCRIPT.value: 0.0,
            TimeoutType.IMPLICIT.value: 0.0,
            TimeoutType.PAGE_LOAD.value: math.inf,
        }

    def __repr__(self) -> str:
        return f"Session({self.session_id!r})"

    # Request primitives ------------------------------------------------------

    async def _get(self, path: str, request_data: Any = None, path_parts: Sequence[Any] = ()) -> Any:
        return await self._request("GET", path, request_data, path_parts)

    async def _post(self, path: str, request_data: Any = None, path_parts: Sequence[Any] = ()) -> Any:
        return await self._request("POST", path, request_data, path_parts)

    async def _delete(self, path: str, request_data: Any = None, path_parts: Sequence[Any] = ()) -> Any:
        return await self._request("DELETE", path, request_data, path_parts)

    async def _request(
        self,
        method: str,
        path: str,
        request_data: Any,
        path_parts: Sequence[Any],
    ) -> Any:
        full_path = "session/$0"
        if path:
            full_path += "/" + shift_placeholders(path)
        parts = [self.session_id, *path_parts]
        send = getattr(self.server, "_" + method.lower())
        async with self._semaphore:
            body = await send(full_path, to_wire(request_data), parts)
        return from_wire(body.get("value"), self)

    # Timeouts ----------------------------------------------------------------

    async def get_timeout(self, type: str) -> float:
        """Return the current value of a timeout, in seconds."""

        return self._timeouts[TimeoutType(type).value]

    async def set_timeout(self, type: str, seconds: float) -> None:
        """Set a timeout for the session, in seconds.

        A value of 0 causes the matching operations to time out immediately;
        an infinite value sends the largest timeout the protocol accepts.
        """

        kind = TimeoutType(type).value
        if math.isnan(seconds) or seconds < 0:
            raise ValueError(f"Invalid {kind} timeout: {seconds!r}")
        ms = MAX_TIMEOUT_MS if math.isinf(seconds) else min(int(seconds * 1000), MAX_TIMEOUT_MS)
        await self._post("timeouts", {"type": kind, "ms": ms})
        self._timeouts[kind] = seconds

    async def get_execute_async_timeout(self) -> float:
        return await self.get_timeout(TimeoutType.SCRIPT.value)

    async def set_execute_async_timeout(self, seconds: float) -> None:
        await self.set_timeout(TimeoutType.SCRIPT.value, seconds)

    async def get_find_timeout(self) -> float:
        return await self.get_timeout(TimeoutType.IMPLICIT.value)

    async def set_find_timeout(self, seconds: float) -> None:
        await self.set_timeout(TimeoutType.IMPLICIT.value, seconds)

    async def get_page_load_timeout(self) -> float:
        return await self.get_timeout(TimeoutType.PAGE_LOAD.value)

    async def set_page_load_timeout(self, seconds: float) -> None:
        await self.set_timeout(TimeoutType.PAGE_LOAD.value, seconds)

    # Windows and frames ------------------------------------------------------

    async def get_current_window_handle(self) -> str:
        return await self._get("window_handle")

    async def get_all_window_handles(self) -> list[str]:
        return list(await self._get("window_handles"))

    async def switch_to_window(self, name: str) -> None:
        await self._post("window", {"name": name, "handle": name})

    async def switch_to_frame(self, frame_id: Union[str, int, Element, None]) -> None:
        """Switch focus to a frame by name, index or element; ``None`` selects the top document."""

        await self._post("frame", {"id": frame_id})

    async def switch_to_parent_frame(self) -> None:
        await self._post("frame/parent")

    async def close_current_window(self) -> None:
        await self._delete("window")

    async def set_window_size(
        self,
        width: int,
        height: int,
        window_handle: str = "current",
    ) -> None:
        await self._post("window/$0/size", {"width": width, "height": height}, [window_handle])

    async def get_window_size(self, window_handle: str = "current") -> Size:
        return Size.model_validate(await self._get("window/$0/size", None, [window_handle]))

    async def set_window_position(self, x: int, y: int, window_handle: str = "current") -> None:
        await self._post("window/$0/position", {"x": x, "y": y}, [window_handle])

    async def get_window_position(self, window_handle: str = "current") -> Position:
        return Position.model_validate(await self._get("window/$0/position", None, [window_handle]))

    async def maximize_window(self, window_handle: str = "current") -> None:
        await self._post("window/$0/maximize", None, [window_handle])

    # Navigation --------------------------------------------------------------

    async def get_current_url(self) -> str:
        return await self._get("url")

    async def get(self, url: str) -> None:
        """Navigate the focused window/frame to a new URL."""

        LOGGER.debug("Session %s navigating to %s", self.session_id, url)
        await self._post("url", {"url": url})

    async def go_forward(self) -> None:
        await self._post("forward")

    async def go_back(self) -> None:
        await self._post("back")

    async def refresh(self) -> None:
        await self._post("refresh")

    # Scripts -----------------------------------------------------------------

    async def execute(self, script: str, args: Sequence[Any] = ()) -> Any:
        """Execute JavaScript synchronously within the focused window/frame.

        Only JSON-serialisable values and :class:`Element` objects may be passed
        as arguments or returned.
        """

        return await self._post("execute", {"script": script, "args": list(args)})

    async def execute_async(self, script: str, args: Sequence[Any] = ()) -> Any:
        """Execute JavaScript that signals completion through a callback.

        The callback is always passed as the final argument to the script. The
        session's script timeout bounds how long the remote end waits for it.
        """

        return await self._post("execute_async", {"script": script, "args": list(args)})

    async def take_screenshot(self) -> bytes:
        """Return a screenshot of the focused window in PNG format."""

        return base64.b64decode(await self._get("screenshot"))

    # Cookies -----------------------------------------------------------------

    async def get_cookies(self) -> list[WebDriverCookie]:
        return [WebDriverCookie.model_validate(item) for item in await self._get("cookie") or []]

    async def set_cookie(self, cookie: Union[WebDriverCookie, Mapping[str, Any]]) -> None:
        if not isinstance(cookie, WebDriverCookie):
            cookie = WebDriverCookie.model_validate(cookie)
        await self._post("cookie", {"cookie": cookie.model_dump(by_alias=True, exclude_none=True)})

    async def clear_cookies(self) -> None:
        await self._delete("cookie")

    async def delete_cookie(self, name: str) -> None:
        await self._delete("cookie/$0", None, [name])

    # Page --------------------------------------------------------------------

    async def get_page_source(self) -> str:
        return await self._get("source")

    async def get_page_title(self) -> str:
        return await self._get("title")

    # Elements ----------------------------------------------------------------

    async def find(self, using: str, value: str) -> Element:
        """Find the first element on the page matching the given query."""

        return await self._post("element", {"using": Strategy(using).value, "value": value})

    async def find_all(self, using: str, value: str) -> list[Element]:
        """Find every element on the page matching the given query."""

        return list(
            await self._post("elements", {"using": Strategy(using).value, "value": value}) or []
        )

    async def get_active_element(self) -> Element:
        return await self._post("element/active")

    async def wait_for_deleted(self, using: str, value: str) -> None:
        """Wait until no element on the page matches the given query.

        The wait is bounded by the session's find timeout.
        """

        await wait_for_deleted(self, self, using, value)

    # Keyboard and alerts -----------------------------------------------------

    async def press_keys(self, keys: Union[str, Sequence[str]]) -> None:
        """Type keys into whichever element currently has focus."""

        await self._post("keys", {"value": as_key_list(keys)})

    async def get_alert_text(self) -> str:
        return await self._get("alert_text")

    async def type_in_prompt(self, text: Union[str, Sequence[str]]) -> None:
        if not isinstance(text, str):
            text = "".join(text)
        await self._post("alert_text", {"text": text})

    async def accept_alert(self) -> None:
        await self._post("accept_alert")

    async def dismiss_alert(self) -> None:
        await self._post("dismiss_alert")

    # Mouse and touch ---------------------------------------------------------

    async def move_mouse_to(
        self,
        element: Optional[Element] = None,
        x_offset: Optional[float] = None,
        y_offset: Optional[float] = None,
    ) -> None:
        """Move the pointer, relative to *element* or to its current position."""

        payload: dict[str, Any] = {}
        if element is not None:
            payload["element"] = element.element_id
        if x_offset is not None:
            payload["xoffset"] = x_offset
        if y_offset is not None:
            payload["yoffset"] = y_offset
        await self._post("moveto", payload)

    async def click_mouse_button(self, button: int = 0) -> None:
        await self._post("click", {"button": button})

    async def press_mouse_button(self, button: int = 0) -> None:
        await self._post("buttondown", {"button": button})

    async def release_mouse_button(self, button: int = 0) -> None:
        await self._post("buttonup", {"button": button})

    async def double_click(self) -> None:
        await self._post("doubleclick")

    async def tap(self, element: Element) -> None:
        await self._post("touch/click", {"element": element.element_id})

    async def press_finger(self, x: int, y: int) -> None:
        """Put a new finger down at the given point without releasing it."""

        await self._post("touch/down", {"x": x, "y": y})

    async def release_finger(self, x: int, y: int) -> None:
        await self._post("touch/up", {"x": x, "y": y})

    async def move_finger(self, x: int, y: int) -> None:
        """Move the last finger put down to a new point."""

        await self._post("touch/move", {"x": x, "y": y})

    async def touch_scroll(
        self,
        element: Optional[Element] = None,
        x_offset: int = 0,
        y_offset: int = 0,
    ) -> None:
        """Scroll the focused window, starting at *element* when one is given."""

        payload: dict[str, Any] = {"xoffset": x_offset, "yoffset": y_offset}
        if element is not None:
            payload["element"] = element.element_id
        await self._post("touch/scroll", payload)

    async def double_tap(self, element: Element) -> None:
        await self._post("touch/doubleclick", {"element": element.element_id})

    async def long_tap(self, element: Element) -> None:
        await self._post("touch/longclick", {"element": element.element_id})

    async def flick_finger(
        self,
        element: Optional[Element] = None,
        x_offset: float = 0,
        y_offset: float = 0,
        speed: Optional[float] = None,
    ) -> None:
        """Flick the screen.

        With an element, *x_offset* and *y_offset* are a distance in pixels
        covered at *speed* pixels per second. Without one they are the flick
        speed along each axis, in pixels per second.
        """

        if element is not None:
            payload: dict[str, Any] = {
                "element": element.element_id,
                "xoffset": x_offset,
                "yoffset": y_offset,
                "speed": speed if speed is not None else 0,
            }
        else:
            payload = {"xspeed": x_offset, "yspeed": y_offset}
        await self._post("touch/flick", payload)

    # Orientation and IME -----------------------------------------------------

    async def get_orientation(self) -> str:
        return await self._get("orientation")

    async def set_orientation(self, orientation: str) -> None:
        """Set the screen orientation, ``"LANDSCAPE"`` or ``"PORTRAIT"``."""

        await self._post("orientation", {"orientation": orientation.upper()})

    async def get_available_ime_engines(self) -> list[str]:
        return list(await self._get("ime/available_engines") or [])

    async def get_active_ime_engine(self) -> str:
        return await self._get("ime/active_engine")

    async def is_ime_activated(self) -> bool:
        return bool(await self._get("ime/activated"))

    async def deactivate_ime(self) -> None:
        await self._post("ime/deactivate")

    async def activate_ime(self, engine: str) -> None:
        await self._post("ime/activate", {"engine": engine})

    # Application cache -------------------------------------------------------

    async def get_application_cache_status(self) -> int:
        """Return the HTML5 application cache status code (0 uncached to 5 obsolete)."""

        return int(await self._get("application_cache/status"))

    # Geolocation and logs ----------------------------------------------------

    async def get_geolocation(self) -> Geolocation:
        return Geolocation.model_validate(await self._get("location"))

    async def set_geolocation(self, location: Union[Geolocation, Mapping[str, Any]]) -> None:
        if not isinstance(location, Geolocation):
            location = Geolocation.model_validate(location)
        await self._post("location", {"location": location.model_dump(exclude_none=True)})

    async def get_logs_for(self, type: str) -> list[LogEntry]:
        entries = await self._post("log", {"type": type}) or []
        return [LogEntry.model_validate(entry) for entry in entries]

    async def get_available_log_types(self) -> list[str]:
        return list(await self._get("log/types") or [])

    # Web storage -------------------------------------------------------------

    async def get_local_storage_keys(self) -> list[str]:
        return list(await self._get("local_storage") or [])

    async def set_local_storage_item(self, key: str, value: str) -> None:
        await self._post("local_storage", {"key": key, "value": value})

    async def clear_local_storage(self) -> None:
        await self._delete("local_storage")

    async def get_local_storage_item(self, key: str) -> Optional[str]:
        return await self._get("local_storage/key/$0", None, [key])

    async def delete_local_storage_item(self, key: str) -> None:
        await self._delete("local_storage/key/$0", None, [key])

    async def get_local_storage_length(self) -> int:
        return int(await self._get("local_storage/size"))

    async def get_session_storage_keys(self) -> list[str]:
        return list(await self._get("session_storage") or [])

    async def set_session_storage_item(self, key: str, value: str) -> None:
        await self._post("session_storage", {"key": key, "value": value})

    async def clear_session_storage(self) -> None:
        await self._delete("session_storage")

    async def get_session_storage_item(self, key: str) -> Optional[str]:
        return await self._get("session_storage/key/$0", None, [key])

    async def delete_session_storage_item(self, key: str) -> None:
        await self._delete("session_storage/key/$0", None, [key])

    async def get_session_storage_length(self) -> int:
        return int(await self._get("session_storage/size"))

    # Lifecycle ---------------------------------------------------------------

    async def quit(self) -> None:
        """Shut down the remote environment and end the session."""

        LOGGER.info("Quitting session %s", self.session_id)
        await self._delete("")
