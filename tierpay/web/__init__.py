"""HTTP API."""

from tierpay.web.app import create_app
from tierpay.web.context import WebConfig

__all__ = ["create_app", "WebConfig"]
