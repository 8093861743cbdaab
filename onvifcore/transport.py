"""
Synchronous HTTP transport using the requests library.

This is a thin layer: it POSTs bytes to an endpoint and returns the
bytes of a 2xx answer.  Everything else is turned into one of the
TransportError subclasses.  No SOAP knowledge lives here.
"""

import logging
import threading
from concurrent import futures
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

import requests
import urllib3
from requests.auth import AuthBase
from requests.structures import CaseInsensitiveDict

from onvifcore import __version__
from onvifcore.lib import error

log = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024

## how often a waiting caller looks at the cancel event
CANCEL_POLL_INTERVAL = 0.05

Timeout = Union[float, Tuple[float, float], None]


def _is_read_timeout(e: Exception) -> bool:
    ## requests reports a timeout while reading the body as ConnectionError
    return bool(e.args) and isinstance(e.args[0], urllib3.exceptions.ReadTimeoutError)


class Transport:
    """
    Executes HTTP requests through a requests Session.

    The session is a connection pool that may be shared between threads
    and between Transport objects.  A session passed in by the caller is
    not closed by close().

    Example:
        with Transport(timeout=10) as transport:
            answer = transport.send("http://192.168.1.100/onvif/device_service", body)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Timeout = 30.0,
        verify: Union[bool, str] = True,
        cert: Union[str, Tuple[str, str], None] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Args:
            session: Existing requests Session to use (creates new if None)
            timeout: Default request timeout in seconds
            verify: Verify SSL certificates, or path of a CA bundle
            cert: Client certificate, passed on to requests
            headers: Extra headers sent with every request
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify
        self.cert = cert
        self.headers = CaseInsensitiveDict(
            {
                "User-Agent": "python-onvifcore/" + __version__,
                "Content-Type": "application/soap+xml; charset=utf-8",
            }
        )
        self.headers.update(headers or {})

    def send(
        self,
        endpoint: str,
        body: bytes,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Timeout = None,
        cancel: Optional[threading.Event] = None,
    ) -> bytes:
        """
        POSTs body to endpoint and returns the response body.

        Args:
            endpoint: Full URL of the service
            body: Request bytes
            headers: Additional headers for this request
            timeout: Overrides the default timeout for this request
            cancel: When set, the request is aborted and CancelledError raised

        Raises:
            CancelledError: cancel was set
            DeadlineExceededError: the timeout was hit
            HTTPStatusError: the peer answered with a non-2xx status.
                The response body is attached for fault inspection.
            TransportError: connection problems
        """
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        if timeout is None:
            timeout = self.timeout

        if cancel is not None and cancel.is_set():
            raise error.CancelledError(url=endpoint)

        log.debug(
            "sending request - url={0}, headers={1}\nbody:\n{2}".format(
                endpoint, combined_headers, body.decode("utf-8", "replace")
            )
        )

        try:
            if cancel is None:
                status, reason, content = self._exchange(
                    endpoint, body, combined_headers, timeout, None
                )
            else:
                status, reason, content = self._cancellable_exchange(
                    endpoint, body, combined_headers, timeout, cancel
                )
        except requests.exceptions.Timeout as e:
            raise error.DeadlineExceededError(url=endpoint, reason=str(e)) from e
        except requests.exceptions.RequestException as e:
            if _is_read_timeout(e):
                raise error.DeadlineExceededError(url=endpoint, reason=str(e)) from e
            raise error.TransportError(
                url=endpoint, reason="connection failed: %s" % e
            ) from e

        log.debug("server responded with %i %s" % (status, reason))
        log.debug(content)

        if error.debug_dump_communication:
            self._dump(endpoint, combined_headers, body, status, reason, content)

        if not 200 <= status < 300:
            if status in (401, 403):
                exc = error.AuthorizationError
            else:
                exc = error.HTTPStatusError
            raise exc(
                url=endpoint,
                reason="%i %s" % (status, reason or ""),
                status=status,
                body=content,
            )
        return content

    def _exchange(
        self,
        endpoint: str,
        body: bytes,
        headers: Mapping[str, str],
        timeout: Timeout,
        cancel: Optional[threading.Event],
    ) -> Tuple[int, str, bytes]:
        ## Redirects are not followed, an http endpoint should
        ## not silently turn into something else.
        with self.session.post(
            endpoint,
            data=body,
            headers=headers,
            timeout=timeout,
            verify=self.verify,
            cert=self.cert,
            allow_redirects=False,
            stream=True,
        ) as r:
            content = self._read(r, endpoint, cancel)
            return r.status_code, r.reason, content

    def _cancellable_exchange(
        self,
        endpoint: str,
        body: bytes,
        headers: Mapping[str, str],
        timeout: Timeout,
        cancel: threading.Event,
    ) -> Tuple[int, str, bytes]:
        """
        Runs the exchange in a worker thread, so the caller can give up
        while the peer has not answered yet, i.e. during a long poll.

        An abandoned worker stops at the next body chunk and closes the
        response; while it still waits for the response headers it is
        bounded by the HTTP timeout.
        """
        future: futures.Future = futures.Future()

        def worker() -> None:
            try:
                future.set_result(
                    self._exchange(endpoint, body, headers, timeout, cancel)
                )
            except Exception as e:
                future.set_exception(e)

        threading.Thread(
            target=worker, name="onvifcore-http", daemon=True
        ).start()

        while not future.done():
            if cancel.wait(CANCEL_POLL_INTERVAL) and not future.done():
                log.debug("request to %s cancelled while waiting for the peer" % endpoint)
                raise error.CancelledError(
                    url=endpoint, reason="cancelled while waiting for the response"
                )
        return future.result()

    def _read(
        self,
        response: requests.Response,
        endpoint: str,
        cancel: Optional[threading.Event],
    ) -> bytes:
        if cancel is None:
            return response.content
        chunks = []
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if cancel.is_set():
                raise error.CancelledError(url=endpoint)
            chunks.append(chunk)
        if cancel.is_set():
            raise error.CancelledError(url=endpoint)
        return b"".join(chunks)

    def get(self, url: str, auth: Optional[AuthBase] = None) -> requests.Response:
        """
        Plain GET, for downloading snapshots and the like.  The response
        is returned fully read.
        """
        try:
            r = self.session.get(
                url,
                headers={"User-Agent": self.headers["User-Agent"]},
                auth=auth,
                timeout=self.timeout,
                verify=self.verify,
                cert=self.cert,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise error.DeadlineExceededError(url=url, reason=str(e)) from e
        except requests.exceptions.RequestException as e:
            raise error.TransportError(
                url=url, reason="download request failed: %s" % e
            ) from e
        log.debug("server responded with %i %s" % (r.status_code, r.reason))
        return r

    def _dump(self, endpoint, headers, body, status, reason, content) -> None:
        import datetime
        from tempfile import NamedTemporaryFile

        with NamedTemporaryFile(prefix="onvifcomm", delete=False) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"POST {endpoint}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(f"{x}: {headers[x]}".encode("utf-8") for x in headers)
            )
            commlog.write(b"\n\n")
            commlog.write(body)
            commlog.write(b"\n<====\n")
            commlog.write(f"{status} {reason}\n\n".encode("utf-8"))
            commlog.write(content)
            commlog.write(b"\n")

    def close(self) -> None:
        """Close the session if we created it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *args) -> None:
        self.close()
