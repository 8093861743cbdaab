#!/usr/bin/env python
import logging

from ._version import __version__
from .client import get_client
from .client import ONVIFClient
from .events import EventService
from .events import SubscriptionManager

## Silence notification of no default logging handler
log = logging.getLogger("onvifcore")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "ONVIFClient",
    "get_client",
    "EventService",
    "SubscriptionManager",
]
