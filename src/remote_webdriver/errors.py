"""Exceptions raised by the WebDriver client and the command chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# JsonWireProtocol response status codes.
STATUS_CODES: dict[int, tuple[str, str]] = {
    0: ("Success", "The command executed successfully."),
    6: ("NoSuchDriver", "A session is either terminated or not started."),
    7: ("NoSuchElement", "An element could not be located on the page using the given search parameters."),
    8: ("NoSuchFrame", "A request to switch to a frame could not be satisfied because the frame could not be found."),
    9: ("UnknownCommand", "The requested resource could not be found, or a request was received using an HTTP method that is not supported by the mapped resource."),
    10: ("StaleElementReference", "An element command failed because the referenced element is no longer attached to the DOM."),
    11: ("ElementNotVisible", "An element command could not be completed because the element is not visible on the page."),
    12: ("InvalidElementState", "An element command could not be completed because the element is in an invalid state."),
    13: ("UnknownError", "An unknown server-side error occurred while processing the command."),
    15: ("ElementIsNotSelectable", "An attempt was made to select an element that cannot be selected."),
    17: ("JavaScriptError", "An error occurred while executing user supplied JavaScript."),
    19: ("XPathLookupError", "An error occurred while searching for an element by XPath."),
    21: ("Timeout", "An operation did not complete before its timeout expired."),
    23: ("NoSuchWindow", "A request to switch to a different window could not be satisfied because the window could not be found."),
    24: ("InvalidCookieDomain", "An illegal attempt was made to set a cookie under a different domain than the current page."),
    25: ("UnableToSetCookie", "A request to set a cookie's value could not be satisfied."),
    26: ("UnexpectedAlertOpen", "A modal dialog was open, blocking this operation."),
    27: ("NoAlertOpenError", "An attempt was made to operate on a modal dialog when one was not open."),
    28: ("ScriptTimeout", "A script did not complete before its timeout expired."),
    29: ("InvalidElementCoordinates", "The coordinates provided to an interactions operation are invalid."),
    30: ("IMENotAvailable", "IME was not available."),
    31: ("IMEEngineActivationFailed", "An IME engine could not be started."),
    32: ("InvalidSelector", "Argument was an invalid selector (e.g. XPath/CSS)."),
    33: ("SessionNotCreatedException", "A new session could not be created."),
    34: ("MoveTargetOutOfBounds", "Target provided for a move action is out of bounds."),
}

# W3C WebDriver error strings mapped onto the JsonWire names above.
W3C_ERRORS: dict[str, str] = {
    "element click intercepted": "UnknownError",
    "element not interactable": "ElementNotVisible",
    "element not selectable": "ElementIsNotSelectable",
    "insecure certificate": "UnknownError",
    "invalid argument": "UnknownError",
    "invalid cookie domain": "InvalidCookieDomain",
    "invalid coordinates": "InvalidElementCoordinates",
    "invalid element state": "InvalidElementState",
    "invalid selector": "InvalidSelector",
    "invalid session id": "NoSuchDriver",
    "javascript error": "JavaScriptError",
    "move target out of bounds": "MoveTargetOutOfBounds",
    "no such alert": "NoAlertOpenError",
    "no such cookie": "UnknownError",
    "no such element": "NoSuchElement",
    "no such frame": "NoSuchFrame",
    "no such window": "NoSuchWindow",
    "script timeout": "ScriptTimeout",
    "session not created": "SessionNotCreatedException",
    "stale element reference": "StaleElementReference",
    "timeout": "Timeout",
    "unable to set cookie": "UnableToSetCookie",
    "unexpected alert open": "UnexpectedAlertOpen",
    "unknown command": "UnknownCommand",
    "unknown error": "UnknownError",
    "unknown method": "UnknownCommand",
    "unsupported operation": "UnknownError",
}


@dataclass
class RequestInfo:
    """Parameters of the request that produced a remote failure."""

    method: str
    url: str
    data: Any = None


class WebDriverError(RuntimeError):
    """Raised when the remote end reports that a command failed."""

    def __init__(
        self,
        message: str,
        *,
        name: str = "UnknownError",
        status: Optional[int] = None,
        detail: Any = None,
        request: Optional[RequestInfo] = None,
    ) -> None:
        super().__init__(message)
        self.name = name
        self.message = message
        self.status = status
        self.detail = detail
        self.request = request

    @property
    def kind(self) -> str:
        return self.name

    def __str__(self) -> str:
        text = f"{self.name}: {self.message}"
        if self.request is not None:
            text += f" ({self.request.method} {self.request.url})"
        return text

    @classmethod
    def from_status(
        cls,
        status: int,
        message: Optional[str] = None,
        *,
        detail: Any = None,
        request: Optional[RequestInfo] = None,
    ) -> "WebDriverError":
        name, default_message = STATUS_CODES.get(status, STATUS_CODES[13])
        return cls(
            message or default_message,
            name=name,
            status=status,
            detail=detail,
            request=request,
        )

    @classmethod
    def from_w3c(
        cls,
        error: str,
        message: Optional[str] = None,
        *,
        status: Optional[int] = None,
        detail: Any = None,
        request: Optional[RequestInfo] = None,
    ) -> "WebDriverError":
        name = W3C_ERRORS.get(error, "UnknownError")
        return cls(
            message or error,
            name=name,
            status=status,
            detail=detail,
            request=request,
        )


class CommandError(RuntimeError):
    """Base class for failures raised by the command chain itself."""

    kind = "CommandError"


class NoElementContextError(CommandError):
    """Raised when an element operation runs without any elements in context."""

    kind = "NoElementContext"


class CommandCancelledError(CommandError):
    """Raised by a command that was cancelled before it settled."""

    kind = "Cancel"


class PollTimeoutError(CommandError, TimeoutError):
    """Raised when a polling helper does not produce a value in time."""

    kind = "Timeout"

    def __init__(self, message: str, *, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


class CommandDeadlockError(CommandError):
    """Raised when a command would wait on its own settlement."""

    kind = "Deadlock"


@dataclass
class ErrorSummary:
    """Plain representation of a failure, used for CLI output."""

    kind: str
    message: str
    request: Optional[RequestInfo] = None
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorSummary":
        if isinstance(exc, WebDriverError):
            return cls(kind=exc.name, message=exc.message, request=exc.request)
        return cls(kind=getattr(exc, "kind", type(exc).__name__), message=str(exc))
