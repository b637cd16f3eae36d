"""Blocking WebDriver client with selector, wait, and screenshot-diff engines."""

from .client import SessionInfo, WebDriverClient
from .config import DriverConfig
from .errors import (
    BestEffortOutcome,
    DecodeError,
    DriverStartError,
    ElementInteractionError,
    ElementNotFound,
    ImageDecodeError,
    InvalidArgument,
    NoActiveSession,
    ProtocolError,
    SessionCreationError,
    TransportError,
    WaitTimeout,
    WebDriverError,
)
from .imaging import compare_images, create_diff_image, pixel_difference_count
from .launcher import DriverProcess
from .locator import Locator
from .page import Browser, BrowserContext, Page
from .selector import ParsedSelector, SelectorStrategy, is_regex, parse_regex, parse_selector

__all__ = [
    "BestEffortOutcome",
    "Browser",
    "BrowserContext",
    "DecodeError",
    "DriverConfig",
    "DriverProcess",
    "DriverStartError",
    "ElementInteractionError",
    "ElementNotFound",
    "ImageDecodeError",
    "InvalidArgument",
    "Locator",
    "NoActiveSession",
    "Page",
    "ParsedSelector",
    "ProtocolError",
    "SelectorStrategy",
    "SessionCreationError",
    "SessionInfo",
    "TransportError",
    "WaitTimeout",
    "WebDriverClient",
    "WebDriverError",
    "compare_images",
    "create_diff_image",
    "is_regex",
    "parse_regex",
    "parse_selector",
    "pixel_difference_count",
]
