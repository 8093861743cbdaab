"""
A minimal SOAP dispatch handler, the device side of RPCDispatcher.

It is good enough to emulate a device in tests or to build a simple
device simulator on top of; it is a plain WSGI application, so any WSGI
server (i.e. wsgiref.simple_server) can host it.

Example:
    handler = SOAPHandler("admin", "secret")
    handler.register_handler("GetSystemDateAndTime", my_function)
    wsgiref.simple_server.make_server("", 8080, handler).serve_forever()
"""

import logging
from http import HTTPStatus
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Optional
from typing import Tuple

from lxml import etree
from lxml.etree import _Element

from onvifcore.elements.base import OperationElement
from onvifcore.lib import error
from onvifcore.lib.namespace import localname
from onvifcore.protocol.envelope import EnvelopeCodec
from onvifcore.protocol.security import verify_token
from onvifcore.protocol.types import Fault

log = logging.getLogger(__name__)

CONTENT_TYPE = "application/soap+xml; charset=utf-8"

## A handler gets the body element of the request and returns the
## children of the response element (or None for an empty response).
## Application errors are signalled by raising FaultError.
Handler = Callable[[_Element], Optional[Iterable]]


def sender_fault(reason: str, subcode: Optional[str] = None, detail=None) -> Fault:
    return Fault(code="s:Sender", reason=reason, subcode=subcode, detail=detail)


def receiver_fault(reason: str, subcode: Optional[str] = None, detail=None) -> Fault:
    return Fault(code="s:Receiver", reason=reason, subcode=subcode, detail=detail)


class SOAPHandler:
    """
    Dispatches SOAP requests to registered handlers by the local name
    of the body element.

    When a username is configured, every request must carry a valid
    WS-Security UsernameToken.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        codec: Optional[EnvelopeCodec] = None,
    ) -> None:
        self.username = username or ""
        self.password = password or ""
        self.codec = codec or EnvelopeCodec()
        self.handlers: Dict[str, Handler] = {}

    def register_handler(self, action: str, handler: Handler) -> None:
        self.handlers[action] = handler

    def _fault(self, fault: Fault) -> Tuple[int, bytes]:
        ## Sender faults are the client's fault
        if fault.code.endswith("Sender") or fault.code.endswith("Client"):
            status = HTTPStatus.BAD_REQUEST
        else:
            status = HTTPStatus.INTERNAL_SERVER_ERROR
        return int(status), self.codec.encode_fault(fault)

    def _authenticate(self, envelope: _Element) -> bool:
        header = self.codec.header_element(envelope)
        token = None
        if header is not None:
            for elem in header.iter():
                if localname(elem.tag) == "UsernameToken":
                    token = elem
                    break
        if token is None:
            return False

        fields = {localname(x.tag): (x.text or "").strip() for x in token}
        return verify_token(
            self.username,
            self.password,
            fields.get("Username", ""),
            fields.get("Password", ""),
            fields.get("Nonce", ""),
            fields.get("Created", ""),
        )

    def handle(self, body: bytes) -> Tuple[int, bytes]:
        """
        Processes one request body.

        Returns:
            (HTTP status, response body)
        """
        try:
            envelope = self.codec.parse(body)
            request = self.codec.body_element(envelope)
        except error.DecodeError as e:
            log.info("rejecting request: %s" % e.reason)
            return self._fault(sender_fault("Invalid SOAP envelope", detail=e.reason))
        if request is None:
            return self._fault(sender_fault("Empty SOAP Body"))

        if self.username and not self._authenticate(envelope):
            log.info("authentication failed for %s" % localname(request.tag))
            return self._fault(
                sender_fault("Authentication failed", subcode="ter:NotAuthorized")
            )

        action = localname(request.tag)
        handler = self.handlers.get(action)
        if handler is None:
            return self._fault(
                sender_fault(
                    "Unknown action: %s" % action, subcode="ter:ActionNotSupported"
                )
            )

        try:
            payload = handler(request)
        except error.FaultError as e:
            return self._fault(e.fault)
        except Exception as e:
            log.error("handler for %s failed" % action, exc_info=True)
            return self._fault(receiver_fault("Internal error", detail=str(e)))

        response = OperationElement(
            "%sResponse" % action, etree.QName(request).namespace
        )
        if payload is not None:
            response += payload
        return int(HTTPStatus.OK), self.codec.encode_element(response)

    def __call__(self, environ, start_response):
        """WSGI entry point"""
        if environ.get("REQUEST_METHOD", "GET") != "POST":
            start_response(
                "405 Method Not Allowed",
                [("Allow", "POST"), ("Content-Type", "text/plain")],
            )
            return [b"Method not allowed"]

        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        try:
            if length > 0:
                body = environ["wsgi.input"].read(length)
            else:
                body = environ["wsgi.input"].read()
        except OSError as e:
            log.info("failed to read request body: %s" % e)
            status, content = self._fault(
                sender_fault("Failed to read request body", detail=str(e))
            )
        else:
            status, content = self.handle(body)

        start_response(
            "%i %s" % (status, HTTPStatus(status).phrase),
            [("Content-Type", CONTENT_TYPE), ("Content-Length", str(len(content)))],
        )
        return [content]
