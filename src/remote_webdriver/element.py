"""Handles to remote DOM elements."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from .errors import WebDriverError
from .models import Position, Size, Strategy
from .strategies import FindStrategies

if TYPE_CHECKING:
    from .session import Session

W3C_ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"

WAIT_FOR_DELETED_INTERVAL = 0.1

_GET_ATTRIBUTE_SCRIPT = "return arguments[0].getAttribute(arguments[1]);"
_GET_PROPERTY_SCRIPT = "return arguments[0][arguments[1]];"

PLACEHOLDER = re.compile(r"\$(\d+)")


def shift_placeholders(path: str, offset: int = 1) -> str:
    """Renumber ``$n`` placeholders so a prefix can take the first slots."""

    return PLACEHOLDER.sub(lambda match: f"${int(match.group(1)) + offset}", path)


def as_key_list(keys: Union[str, Sequence[str]]) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


async def wait_for_deleted(finder: Any, session: "Session", using: str, value: str) -> None:
    """Poll ``finder.find_all`` until nothing matches or the find timeout elapses."""

    original_timeout = await session.get_find_timeout()
    await session.set_find_timeout(0)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + original_timeout
    try:
        while True:
            elements = await finder.find_all(using, value)
            if not elements:
                return None
            if loop.time() >= deadline:
                raise WebDriverError(
                    f"Element matching {using} {value!r} was not deleted in time",
                    name="Timeout",
                    status=21,
                )
            await asyncio.sleep(WAIT_FOR_DELETED_INTERVAL)
    finally:
        await session.set_find_timeout(original_timeout)


class Element(FindStrategies):
    """A handle to a remote element, scoped to the session that found it.

    Two instances may refer to the same remote node; use :meth:`equals` to ask
    the remote end rather than comparing objects.
    """

    def __init__(
        self,
        element_id: Union[str, "Element", Mapping[str, Any]],
        session: "Session",
    ) -> None:
        if isinstance(element_id, Element):
            element_id = element_id.element_id
        elif isinstance(element_id, Mapping):
            element_id = element_id.get("ELEMENT") or element_id[W3C_ELEMENT_KEY]
        self.element_id = str(element_id)
        self.session = session

    def __repr__(self) -> str:
        return f"Element({self.element_id!r})"

    def to_json(self) -> dict[str, str]:
        return {"ELEMENT": self.element_id, W3C_ELEMENT_KEY: self.element_id}

    async def _get(self, path: str, request_data: Any = None, path_parts: Sequence[Any] = ()) -> Any:
        scoped, parts = self._scope(path, path_parts)
        return await self.session._get(scoped, request_data, parts)

    async def _post(self, path: str, request_data: Any = None, path_parts: Sequence[Any] = ()) -> Any:
        scoped, parts = self._scope(path, path_parts)
        return await self.session._post(scoped, request_data, parts)

    def _scope(self, path: str, path_parts: Sequence[Any]) -> tuple[str, list[Any]]:
        scoped = "element/$0"
        if path:
            scoped += "/" + shift_placeholders(path)
        return scoped, [self.element_id, *path_parts]

    async def find(self, using: str, value: str) -> "Element":
        """Find the first descendant of this element matching the given query."""

        return await self._post("element", {"using": Strategy(using).value, "value": value})

    async def find_all(self, using: str, value: str) -> list["Element"]:
        """Find every descendant of this element matching the given query."""

        return list(
            await self._post("elements", {"using": Strategy(using).value, "value": value}) or []
        )

    async def wait_for_deleted(self, using: str, value: str) -> None:
        await wait_for_deleted(self, self.session, using, value)

    async def click(self) -> None:
        await self._post("click")

    async def submit(self) -> None:
        await self._post("submit")

    async def get_visible_text(self) -> str:
        return await self._get("text")

    async def type(self, value: Union[str, Sequence[str]]) -> None:
        """Type into the element, which receives focus first."""

        await self._post("value", {"value": as_key_list(value)})

    async def get_tag_name(self) -> str:
        return await self._get("name")

    async def clear_value(self) -> None:
        await self._post("clear")

    async def is_selected(self) -> bool:
        return bool(await self._get("selected"))

    async def is_enabled(self) -> bool:
        return bool(await self._get("enabled"))

    async def get_spec_attribute(self, name: str) -> Optional[str]:
        """Return an attribute using the remote end's own attribute rules."""

        return await self._get("attribute/$0", None, [name])

    async def get_attribute(self, name: str) -> Optional[str]:
        """Return the literal value of an HTML attribute."""

        return await self.session.execute(_GET_ATTRIBUTE_SCRIPT, [self, name])

    async def get_property(self, name: str) -> Any:
        """Return the value of a DOM property."""

        return await self.session.execute(_GET_PROPERTY_SCRIPT, [self, name])

    async def equals(self, other: "Element") -> bool:
        return bool(await self._get("equals/$0", None, [other.element_id]))

    async def is_displayed(self) -> bool:
        return bool(await self._get("displayed"))

    async def get_position(self) -> Position:
        return Position.model_validate(await self._get("location"))

    async def get_size(self) -> Size:
        return Size.model_validate(await self._get("size"))

    async def get_computed_style(self, property_name: str) -> str:
        return await self._get("css/$0", None, [property_name])
