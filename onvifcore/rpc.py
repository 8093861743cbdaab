"""
The one primitive every ONVIF operation goes through.

RPCDispatcher.call() generates a security token (when credentials are
configured), encodes the request envelope, sends it through the
Transport and decodes the answer.  There is exactly one network exchange
per call, and no retries: operations like Renew or a PTZ move are not
guaranteed to be idempotent, so retrying is left to the caller.
"""

import logging
import threading
from typing import Callable
from typing import Iterable
from typing import Optional
from typing import Tuple
from typing import TypeVar

from lxml.etree import _Element

from onvifcore.lib import error
from onvifcore.protocol.envelope import EnvelopeCodec
from onvifcore.protocol.security import generate_token
from onvifcore.transport import Timeout
from onvifcore.transport import Transport

log = logging.getLogger(__name__)

T = TypeVar("T")


class RPCDispatcher:
    """
    Composes security, envelope codec and transport into call().

    The credentials may be replaced while other threads are calling;
    each call picks up a consistent username/password pair.
    """

    def __init__(
        self,
        transport: Transport,
        codec: Optional[EnvelopeCodec] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.codec = codec or EnvelopeCodec()
        self._lock = threading.Lock()
        self._username = username or ""
        self._password = password or ""

    def set_credentials(self, username: Optional[str], password: Optional[str]) -> None:
        with self._lock:
            self._username = username or ""
            self._password = password or ""

    def get_credentials(self) -> Tuple[str, str]:
        with self._lock:
            return self._username, self._password

    def call(
        self,
        endpoint: str,
        operation: str,
        namespace: str,
        payload: Iterable = (),
        parser: Optional[Callable[[_Element], T]] = None,
        timeout: Timeout = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[T]:
        """
        Performs one RPC.

        Args:
            endpoint: Service URL
            operation: Operation name, i.e. "PullMessages"
            namespace: Namespace of the operation element
            payload: Child elements of the operation element
            parser: Turns the response element into a result.  None for void operations.
            timeout: HTTP timeout for this call
            cancel: threading.Event aborting the call when set

        Returns:
            The parser's result, or None for void operations

        Raises:
            FaultError: the peer returned a SOAP fault (application error)
            TransportError: connection failure, non-2xx without fault, cancellation
            DecodeError: the response did not have the expected shape

        The raised error has its operation attribute set.
        """
        username, password = self.get_credentials()
        ## No username, no security header
        token = generate_token(username, password) if username else None

        body = self.codec.encode(operation, namespace, payload, security=token)
        log.debug("calling %s at %s" % (operation, endpoint))
        try:
            try:
                response = self.transport.send(
                    endpoint, body, timeout=timeout, cancel=cancel
                )
            except error.HTTPStatusError as e:
                ## A SOAP fault in a non-2xx answer is still an
                ## application level failure
                fault = self.codec.find_fault(e.body) if e.body else None
                if fault is None:
                    raise
                raise error.FaultError(fault, url=endpoint, status=e.status) from e
            return self.codec.decode(response, parser)
        except error.ONVIFError as e:
            e.operation = operation
            if not e.url:
                e.url = endpoint
            log.debug("%s" % e)
            raise
