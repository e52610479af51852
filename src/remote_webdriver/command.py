"""Chainable commands executed serially against a remote session.

A :class:`Command` wraps one link of a command chain. Every chained call
creates a new command that waits for its parent to settle, runs its own
initialiser, and passes a value and an *element context* on to its children::

    text = await (
        Command(session)
        .get("http://example.com")
        .find_by_tag_name("h1")
        .get_visible_text()
    )

Commands built from the same parent are independent continuations and run
concurrently once the parent has settled::

    page = Command(session).get("http://example.com")
    title, heading = await asyncio.gather(
        page.get_page_title(),
        page.find_by_tag_name("h1").get_visible_text(),
    )

Session operations (navigation, scripts, windows...) apply to the whole
browser. Element operations (``click``, ``get_visible_text``...) apply to the
elements found by the nearest ``find``/``find_all`` in the chain: a single
element context yields a scalar result, a multiple element context yields a
list in context order. ``find`` and ``find_all`` search within the current
context when there is one, otherwise the whole page. :meth:`Command.end` pops
element contexts the way ``jQuery#end`` does.

Custom steps are plain functions passed to :meth:`Command.then`; they receive
the previous value and a :class:`ChainLink` handle::

    def login(username, password):
        def step(value, link):
            return (
                link.command.parent
                .find_by_id("username").type(username).end()
                .find_by_id("password").type(password).end()
                .find_by_id("login").click().end()
            )
        return step

    await Command(session).get(url).then(login("user", "secret"))

Returning the command itself, or a chain started from it, from a callback
would make the command wait on its own settlement; this is detected and
reported as :class:`~remote_webdriver.errors.CommandDeadlockError`.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from collections.abc import Awaitable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .element import Element
from .errors import CommandCancelledError, CommandDeadlockError, NoElementContextError
from .session import Session
from .strategies import FindStrategies

LOGGER = logging.getLogger(__name__)

_RUNNING: contextvars.ContextVar[Optional["Command"]] = contextvars.ContextVar(
    "remote_webdriver_running_command", default=None
)


@dataclass(frozen=True)
class ElementContext:
    """The elements that element operations of a command apply to.

    ``single`` is true when the context comes from a singular lookup such as
    ``find`` or ``get_active_element``; element operations then resolve to a
    scalar instead of a list. ``depth`` counts the filtering operations that
    produced the context and is what :meth:`Command.end` unwinds.
    """

    elements: tuple[Element, ...] = ()
    single: bool = False
    depth: int = 0

    def __post_init__(self) -> None:
        if self.single and len(self.elements) != 1:
            raise ValueError("A single element context must hold exactly one element")

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(self.elements)

    def __getitem__(self, index: int) -> Element:
        return self.elements[index]


ROOT_CONTEXT = ElementContext()

ContextValue = Union[Element, Sequence[Element], ElementContext, None]
ContextSetter = Callable[[ContextValue], None]


def _coerce_context(value: ContextValue, inherited: ElementContext) -> ElementContext:
    if isinstance(value, ElementContext):
        return value
    depth = inherited.depth + 1
    if isinstance(value, Element):
        return ElementContext((value,), single=True, depth=depth)
    return ElementContext(tuple(value or ()), single=False, depth=depth)


@dataclass
class ChainLink:
    """Handle given to initialisers, errbacks and ``then`` callbacks.

    ``context`` is the element context inherited from the parent command.
    Calling :meth:`set_context` replaces the context the command passes on to
    its children; the last call before the command settles wins.
    """

    command: "Command"
    context: ElementContext
    _setter: ContextSetter

    @property
    def session(self) -> Session:
        return self.command.session

    def set_context(self, value: ContextValue) -> None:
        self._setter(value)


Initializer = Callable[[ChainLink, Any], Any]
Errback = Callable[[ChainLink, BaseException], Any]


async def _resolve(result: Any) -> Any:
    while inspect.isawaitable(result):
        result = await result
    return result


async def _each(
    context: ElementContext,
    call: Callable[[Element], Awaitable[Any]],
) -> Any:
    """Run *call* for every element in *context*.

    A single context resolves to the bare result. Otherwise the calls run
    concurrently, every call is allowed to finish, and either the results are
    returned in context order or the first failure in context order is raised.
    """

    if context.single:
        return await call(context[0])
    results = await asyncio.gather(
        *(call(element) for element in context),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class SessionOperation:
    """Declares a :class:`Session` method that :class:`Command` forwards.

    ``creates_context`` operations install their result as the new element
    context. ``uses_element`` operations take an element as first argument;
    when none is given explicitly, the operation runs against the elements of
    the current context instead.
    """

    def __init__(self, *, creates_context: bool = False, uses_element: bool = False) -> None:
        self.creates_context = creates_context
        self.uses_element = uses_element
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, command: Optional["Command"], owner: Optional[type] = None) -> Any:
        if command is None:
            return self
        operation = self

        def chained(*args: Any, **kwargs: Any) -> Command:
            return Command(command, lambda link, _value: operation.invoke(link, args, kwargs))

        chained.__name__ = self.name
        chained.__doc__ = getattr(Session, self.name).__doc__
        return chained

    async def invoke(self, link: ChainLink, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        method = getattr(link.session, self.name)
        context = link.context
        if self.uses_element and context and not _has_element(args, kwargs):
            result = await _each(context, lambda element: method(*_with_element(element, args), **kwargs))
        else:
            result = await method(*args, **kwargs)
        if self.creates_context:
            link.set_context(result)
        return result


class ElementOperation:
    """Declares an :class:`Element` method applied to the current element context."""

    def __init__(self) -> None:
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, command: Optional["Command"], owner: Optional[type] = None) -> Any:
        if command is None:
            return self
        operation = self

        def chained(*args: Any, **kwargs: Any) -> Command:
            return Command(command, lambda link, _value: operation.invoke(link, args, kwargs))

        chained.__name__ = self.name
        chained.__doc__ = getattr(Element, self.name).__doc__
        return chained

    async def invoke(self, link: ChainLink, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        context = link.context
        if not context:
            raise NoElementContextError(f"{self.name}() requires an element context")
        return await _each(context, lambda element: getattr(element, self.name)(*args, **kwargs))


def _has_element(args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
    if args and isinstance(args[0], Element):
        return True
    return isinstance(kwargs.get("element"), Element)


def _with_element(element: Element, args: tuple[Any, ...]) -> tuple[Any, ...]:
    # A leading ``None`` is a placeholder for the element.
    if args and args[0] is None:
        args = args[1:]
    return (element, *args)


class Command(FindStrategies):
    """A chainable link of operations executed against a remote session.

    :param parent: The command this one is chained to, or the
        :class:`Session` that starts a new chain.
    :param initializer: Called as ``initializer(link, value)`` once the parent
        settled successfully. May return a value or an awaitable, and may call
        ``link.set_context`` before its result settles. Without an initialiser
        the parent's value is passed through.
    :param errback: Called as ``errback(link, error)`` when the parent failed.
        A successful return heals the chain. Without an errback the failure
        propagates unchanged and the initialiser is skipped.

    Construction does not run anything. The command executes when it, or a
    command chained from it, is awaited.
    """

    def __init__(
        self,
        parent: Union["Command", Session],
        initializer: Optional[Initializer] = None,
        errback: Optional[Errback] = None,
    ) -> None:
        if isinstance(parent, Command):
            self._parent: Optional[Command] = parent
            self._session = parent.session
        else:
            self._parent = None
            self._session = parent
        self._initializer = initializer
        self._errback = errback
        self._context = ROOT_CONTEXT
        self._result: Optional[asyncio.Future[Any]] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._cancelled = False

    def __repr__(self) -> str:
        if self._result is None:
            state = "pending"
        elif not self._result.done():
            state = "running"
        elif self._result.exception() is not None:
            state = "failed"
        else:
            state = "settled"
        return f"<Command {state} session={self._session!r} depth={self._context.depth}>"

    # Chain state -------------------------------------------------------------

    @property
    def parent(self) -> Optional["Command"]:
        return self._parent

    @property
    def session(self) -> Session:
        return self._session

    @property
    def context(self) -> ElementContext:
        """The element context passed on to children; final once the command settled."""

        return self._context

    def done(self) -> bool:
        return self._result is not None and self._result.done()

    def result(self) -> Any:
        """Return the settled value, or raise the settled failure."""

        if self._result is None or not self._result.done():
            raise asyncio.InvalidStateError("Command has not settled yet")
        return self._result.result()

    def depends_on(self, other: "Command") -> bool:
        """Return True if *other* is this command or one of its ancestors."""

        node: Optional[Command] = self
        while node is not None:
            if node is other:
                return True
            node = node._parent
        return False

    def __await__(self) -> Any:
        running = _RUNNING.get()
        if running is not None and not self.done() and self.depends_on(running):
            raise CommandDeadlockError(
                f"{running!r} cannot wait for {self!r}, which waits for it to settle"
            )
        return asyncio.shield(self._start()).__await__()

    # Execution ---------------------------------------------------------------

    def _start(self) -> asyncio.Future[Any]:
        if self._result is None:
            loop = asyncio.get_running_loop()
            self._result = loop.create_future()
            if self._cancelled:
                self._fail_cancelled()
            else:
                self._task = loop.create_task(self._run())
        return self._result

    async def _run(self) -> None:
        _RUNNING.set(self)
        try:
            value = await self._settle()
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
        except Exception as exc:
            self._finish(exception=exc)
        else:
            self._finish(value=value)

    def _finish(self, *, value: Any = None, exception: Optional[BaseException] = None) -> None:
        assert self._result is not None
        if self._result.done():
            return
        if exception is not None:
            LOGGER.debug("%r failed: %s", self, exception)
            self._result.set_exception(exception)
        else:
            self._result.set_result(value)

    async def _settle(self) -> Any:
        succeeded = True
        outcome: Any = None
        inherited = ROOT_CONTEXT
        if self._parent is not None:
            try:
                outcome = await asyncio.shield(self._parent._start())
            except CommandCancelledError:
                self._context = self._parent.context
                raise
            except Exception as error:
                succeeded = False
                outcome = error
            inherited = self._parent.context
        self._context = inherited

        new_context: list[ElementContext] = []

        def set_context(value: ContextValue) -> None:
            if self.done():
                LOGGER.debug("Ignoring context set on settled %r", self)
                return
            new_context[:] = [_coerce_context(value, inherited)]

        link = ChainLink(self, inherited, set_context)
        if succeeded:
            if self._initializer is None:
                return outcome
            result = self._initializer(link, outcome)
        else:
            if self._errback is None:
                raise outcome
            result = self._errback(link, outcome)
        value = await _resolve(result)
        if new_context:
            self._context = new_context[0]
        return value

    def cancel(self) -> "Command":
        """Cancel the command and everything chained from it.

        A command that already settled is unaffected. Otherwise it fails with
        :class:`~remote_webdriver.errors.CommandCancelledError`, any remote
        operation it is waiting on is abandoned, and every command chained from
        it fails the same way. Cancelling twice has no further effect.
        """

        if self._cancelled or self.done():
            return self
        self._cancelled = True
        LOGGER.debug("Cancelling %r", self)
        if self._result is not None:
            self._fail_cancelled()
            if self._task is not None:
                self._task.cancel()
        return self

    def _fail_cancelled(self) -> None:
        assert self._result is not None
        self._result.set_exception(CommandCancelledError("Command was cancelled"))
        # Cancellation is requested explicitly, so it is not reported as unretrieved.
        self._result.exception()

    # Chaining ----------------------------------------------------------------

    def then(
        self,
        callback: Optional[Callable[[Any, ChainLink], Any]] = None,
        errback: Optional[Callable[[BaseException, ChainLink], Any]] = None,
    ) -> "Command":
        """Chain a callback run with the previous value and a :class:`ChainLink`.

        The callback may return a plain value, an awaitable or another command.
        If it never calls ``link.set_context`` the parent's element context is
        passed through unchanged.
        """

        def initializer(link: ChainLink, value: Any) -> Any:
            if callback is None:
                return value
            return callback(value, link)

        def on_error(link: ChainLink, error: BaseException) -> Any:
            assert errback is not None
            return errback(error, link)

        return Command(self, initializer, on_error if errback is not None else None)

    def catch(self, errback: Callable[[BaseException, ChainLink], Any]) -> "Command":
        return self.then(None, errback)

    def finally_(self, callback: Callable[[Any, ChainLink], Any]) -> "Command":
        """Run *callback* with the value or the error, then pass the outcome on.

        The previous value or failure is kept unless the callback itself fails.
        """

        async def on_value(link: ChainLink, value: Any) -> Any:
            await _resolve(callback(value, link))
            return value

        async def on_error(link: ChainLink, error: BaseException) -> Any:
            await _resolve(callback(error, link))
            raise error

        return Command(self, on_value, on_error)

    def sleep(self, seconds: float) -> "Command":
        """Pause for *seconds* before the next command in the chain runs."""

        return Command(self, lambda link, _value: asyncio.sleep(seconds))

    def end(self, count: int = 1) -> "Command":
        """Pop *count* element-filtering levels, like ``jQuery#end``.

        Links that did not change the element context are not counted. Popping
        more levels than exist stops at the whole-document context.
        """

        def initializer(link: ChainLink, _value: Any) -> None:
            target = link.context
            depth = target.depth
            remaining = count
            node: Optional[Command] = link.command
            while remaining > 0 and depth > 0:
                node = node.parent if node is not None else None
                if node is None:
                    target = ROOT_CONTEXT
                    break
                if node.context.depth < depth:
                    remaining -= 1
                    depth = node.context.depth
                    target = node.context
            link.set_context(target)

        return Command(self, initializer)

    # Context-scoped lookups --------------------------------------------------

    def find(self, using: str, value: str) -> "Command":
        """Find the first element matching the query.

        Searches within each element of the current context, or the whole page
        when no element filter is active. The result becomes the new context.
        """

        return Command(self, lambda link, _value: _lookup(link, "find", using, value))

    def find_all(self, using: str, value: str) -> "Command":
        """Find every element matching the query; see :meth:`find` for scoping."""

        return Command(self, lambda link, _value: _lookup(link, "find_all", using, value))

    def wait_for_deleted(self, using: str, value: str) -> "Command":
        """Wait until nothing matches the query within the current context."""

        return Command(self, lambda link, _value: _lookup(link, "wait_for_deleted", using, value))

    # Session operations ------------------------------------------------------

    get_timeout = SessionOperation()
    set_timeout = SessionOperation()
    get_execute_async_timeout = SessionOperation()
    set_execute_async_timeout = SessionOperation()
    get_find_timeout = SessionOperation()
    set_find_timeout = SessionOperation()
    get_page_load_timeout = SessionOperation()
    set_page_load_timeout = SessionOperation()

    get_current_window_handle = SessionOperation()
    get_all_window_handles = SessionOperation()
    switch_to_window = SessionOperation()
    switch_to_frame = SessionOperation()
    switch_to_parent_frame = SessionOperation()
    close_current_window = SessionOperation()
    set_window_size = SessionOperation()
    get_window_size = SessionOperation()
    set_window_position = SessionOperation()
    get_window_position = SessionOperation()
    maximize_window = SessionOperation()

    get_current_url = SessionOperation()
    get = SessionOperation()
    go_forward = SessionOperation()
    go_back = SessionOperation()
    refresh = SessionOperation()

    execute = SessionOperation()
    execute_async = SessionOperation()
    take_screenshot = SessionOperation()

    get_cookies = SessionOperation()
    set_cookie = SessionOperation()
    clear_cookies = SessionOperation()
    delete_cookie = SessionOperation()

    get_page_source = SessionOperation()
    get_page_title = SessionOperation()
    get_active_element = SessionOperation(creates_context=True)

    press_keys = SessionOperation()
    get_alert_text = SessionOperation()
    type_in_prompt = SessionOperation()
    accept_alert = SessionOperation()
    dismiss_alert = SessionOperation()

    move_mouse_to = SessionOperation(uses_element=True)
    click_mouse_button = SessionOperation()
    press_mouse_button = SessionOperation()
    release_mouse_button = SessionOperation()
    double_click = SessionOperation()
    tap = SessionOperation(uses_element=True)
    press_finger = SessionOperation()
    release_finger = SessionOperation()
    move_finger = SessionOperation()
    touch_scroll = SessionOperation(uses_element=True)
    double_tap = SessionOperation(uses_element=True)
    long_tap = SessionOperation(uses_element=True)
    flick_finger = SessionOperation(uses_element=True)

    get_orientation = SessionOperation()
    set_orientation = SessionOperation()
    get_available_ime_engines = SessionOperation()
    get_active_ime_engine = SessionOperation()
    is_ime_activated = SessionOperation()
    deactivate_ime = SessionOperation()
    activate_ime = SessionOperation()
    get_application_cache_status = SessionOperation()

    get_geolocation = SessionOperation()
    set_geolocation = SessionOperation()
    get_logs_for = SessionOperation()
    get_available_log_types = SessionOperation()

    get_local_storage_keys = SessionOperation()
    set_local_storage_item = SessionOperation()
    clear_local_storage = SessionOperation()
    get_local_storage_item = SessionOperation()
    delete_local_storage_item = SessionOperation()
    get_local_storage_length = SessionOperation()
    get_session_storage_keys = SessionOperation()
    set_session_storage_item = SessionOperation()
    clear_session_storage = SessionOperation()
    get_session_storage_item = SessionOperation()
    delete_session_storage_item = SessionOperation()
    get_session_storage_length = SessionOperation()

    quit = SessionOperation()

    # Element operations ------------------------------------------------------

    click = ElementOperation()
    submit = ElementOperation()
    get_visible_text = ElementOperation()
    type = ElementOperation()
    get_tag_name = ElementOperation()
    clear_value = ElementOperation()
    is_selected = ElementOperation()
    is_enabled = ElementOperation()
    get_spec_attribute = ElementOperation()
    get_attribute = ElementOperation()
    get_property = ElementOperation()
    equals = ElementOperation()
    is_displayed = ElementOperation()
    get_position = ElementOperation()
    get_size = ElementOperation()
    get_computed_style = ElementOperation()


async def _lookup(link: ChainLink, method: str, using: str, value: str) -> Any:
    context = link.context
    if not context:
        if context.depth > 0:
            raise NoElementContextError(f"{method}() has no elements to search within")
        result = await getattr(link.session, method)(using, value)
    else:
        result = await _each(context, lambda element: getattr(element, method)(using, value))
        if method == "find_all" and not context.single:
            result = [element for found in result for element in found]
    if method != "wait_for_deleted":
        link.set_context(result)
    return result
