"""Shared models used across the WebDriver client."""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Strategy(str, enum.Enum):
    """Element location strategies understood by the remote end."""

    CLASS_NAME = "class name"
    CSS_SELECTOR = "css selector"
    ID = "id"
    NAME = "name"
    LINK_TEXT = "link text"
    PARTIAL_LINK_TEXT = "partial link text"
    TAG_NAME = "tag name"
    XPATH = "xpath"


class TimeoutType(str, enum.Enum):
    """Timeout categories negotiated with the remote session."""

    SCRIPT = "script"
    IMPLICIT = "implicit"
    PAGE_LOAD = "page load"


class WebDriverCookie(BaseModel):
    """An HTTP cookie as exchanged with the remote end."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    value: str
    path: Optional[str] = None
    domain: Optional[str] = None
    secure: Optional[bool] = None
    http_only: Optional[bool] = Field(default=None, alias="httpOnly")
    expiry: Optional[float] = Field(
        default=None,
        description="Expiration time in seconds since the unix epoch.",
    )


class Geolocation(BaseModel):
    """A geographical location in the WGS84 coordinate system."""

    latitude: float
    longitude: float
    altitude: Optional[float] = None


class LogEntry(BaseModel):
    """A remote log entry."""

    timestamp: float
    level: str
    message: str


class Size(BaseModel):
    width: int
    height: int


class Position(BaseModel):
    x: float
    y: float


class Capabilities(BaseModel):
    """Features and known defects of a remote environment.

    Only the flags consulted by the client are declared; any other capability
    returned by the remote end is kept as an extra field.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    browser_name: Optional[str] = Field(default=None, alias="browserName")
    version: Optional[str] = None
    platform: Optional[str] = None
    javascript_enabled: Optional[bool] = Field(default=None, alias="javascriptEnabled")
    takes_screenshot: Optional[bool] = Field(default=None, alias="takesScreenshot")
    remote_files: Optional[bool] = Field(default=None, alias="remoteFiles")
    supports_navigation_data_uris: Optional[bool] = Field(
        default=None, alias="supportsNavigationDataUris"
    )
    broken_cookies: Optional[bool] = Field(default=None, alias="brokenCookies")
    broken_delete_cookie: Optional[bool] = Field(default=None, alias="brokenDeleteCookie")
    broken_navigation: Optional[bool] = Field(default=None, alias="brokenNavigation")
    broken_window_switch: Optional[bool] = Field(default=None, alias="brokenWindowSwitch")
    implicit_window_handles: Optional[bool] = Field(
        default=None, alias="implicitWindowHandles"
    )
