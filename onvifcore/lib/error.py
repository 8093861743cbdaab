#!/usr/bin/env python
import logging
import os
from typing import Optional

from onvifcore import __version__

## Environmental variables prepended with "PYTHON_ONVIF" are used for debug purposes,
## environmental variables prepended with "ONVIF_" are for connection parameters
debug_dump_communication = os.environ.get("PYTHON_ONVIF_COMMDUMP", False)

## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_ONVIF_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("onvifcore")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def weirdness(*reasons) -> None:
    """Logs that the peer deviates from what the protocol prescribes.

    The library continues; in DEBUG_PDB mode a debugger is started.
    """
    from onvifcore.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


class ONVIFError(Exception):
    """
    Base class for everything the library raises.  The url property
    contains the endpoint in question, the reason property the cause
    and the operation property the name of the failing RPC (if any).
    """

    url: Optional[str] = None
    reason: str = "no reason"
    operation: Optional[str] = None

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(reason or self.reason)
        if url:
            self.url = url
        if reason:
            self.reason = reason
        if operation:
            self.operation = operation

    def __str__(self) -> str:
        msg = "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )
        if self.operation:
            msg = "%s failed: %s" % (self.operation, msg)
        return msg


## Validation errors are raised before any network traffic happens
class ValidationError(ONVIFError, ValueError):
    pass


class InvalidSubscriptionReference(ValidationError):
    reason = "invalid subscription reference"


class InvalidTerminationTime(ValidationError):
    reason = "invalid termination time"


class InvalidTimeout(ValidationError):
    reason = "invalid timeout: must be positive"


class InvalidMessageLimit(ValidationError):
    reason = "invalid message limit: must be positive"


class InvalidEventBrokerAddress(ValidationError):
    reason = "invalid event broker address: cannot be empty"


class EventBrokerConfigMissing(ValidationError):
    reason = "event broker config cannot be None"


class InvalidEndpoint(ValidationError):
    reason = "invalid endpoint"


class TransportError(ONVIFError):
    """
    The HTTP exchange itself failed: the connection could not be
    established, the peer answered with a non-2xx status without a
    SOAP fault in the body, or the call was cancelled.  These are
    candidates for a retry with backoff, at the discretion of the caller.
    """

    pass


class HTTPStatusError(TransportError):
    status: int = 0
    body: bytes = b""

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: int = 0,
        body: bytes = b"",
    ) -> None:
        super().__init__(url=url, reason=reason or "HTTP status %i" % status)
        self.status = status
        self.body = body


class AuthorizationError(HTTPStatusError):
    """
    The peer answered 401 or 403 without a SOAP fault in the body.
    """

    pass


class CancelledError(TransportError):
    reason = "request cancelled"


class DeadlineExceededError(CancelledError):
    reason = "request timeout"


class FaultError(ONVIFError):
    """
    The peer returned a well-formed SOAP fault.  The fault property
    holds the parsed code, subcode, reason and detail.  Faults are
    application level failures and are likely not worth retrying.
    """

    fault = None
    status: int = 200

    def __init__(
        self,
        fault,
        url: Optional[str] = None,
        status: int = 200,
    ) -> None:
        reason = "[%s] %s" % (fault.subcode or fault.code, fault.reason)
        if fault.detail:
            reason += " - %s" % fault.detail
        super().__init__(url=url, reason=reason)
        self.fault = fault
        self.status = status

    @property
    def code(self) -> str:
        return self.fault.code

    @property
    def subcode(self) -> Optional[str]:
        return self.fault.subcode


class DecodeError(ONVIFError):
    """
    The response does not have the shape expected for the operation.
    """

    pass


class DurationFormatError(ValueError):
    pass
