"""Reusable ``then`` callbacks for command chains."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Optional

from .errors import PollTimeoutError

if TYPE_CHECKING:
    from .command import ChainLink

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.067


def poll_until(
    poller: str,
    args: Sequence[Any] = (),
    timeout: Optional[float] = None,
    poll_interval: Optional[float] = None,
) -> Callable[[Any, "ChainLink"], Any]:
    """Build a callback that runs *poller* in the browser until it returns a value.

    *poller* is the body of a JavaScript function executed with
    :meth:`~remote_webdriver.session.Session.execute`. A ``null`` (``None``)
    result means the condition has not been met yet; any other value ends the
    poll and becomes the command's value::

        await (
            Command(session)
            .get(url)
            .then(poll_until("return document.querySelector('#ready');", timeout=5))
        )

    *timeout* defaults to the session's execute-async timeout and
    *poll_interval* to :data:`DEFAULT_POLL_INTERVAL`, both in seconds. When
    the timeout elapses the command fails with
    :class:`~remote_webdriver.errors.PollTimeoutError`; errors raised by the
    remote end stop the poll immediately.
    """

    interval = DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval
    script_args = list(args)

    async def poll(_value: Any, link: "ChainLink") -> Any:
        session = link.session
        limit = timeout if timeout is not None else await session.get_execute_async_timeout()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + limit
        attempts = 0
        while True:
            result = await session.execute(poller, script_args)
            attempts += 1
            if result is not None:
                return result
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise PollTimeoutError(
                    f"Polling timed out after {limit}s and {attempts} attempts",
                    timeout=limit,
                )
            LOGGER.debug("Poll attempt %s returned no result, retrying", attempts)
            await asyncio.sleep(min(interval, remaining))

    return poll
