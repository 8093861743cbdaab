"""
The ONVIFClient is the entry point of the library: it holds the device
endpoint, the per-service endpoints, the credentials and one HTTP
connection pool.  It does not connect on creation; see initialize().

Example:
    with ONVIFClient("192.168.1.100", username="admin", password="secret") as client:
        client.initialize()
        manager = client.subscription_manager()
        manager.create("tns1:VideoSource//.", requested_termination_time=60)
        for message in manager.pull(timeout=10, message_limit=10):
            print(message.topic, message.data)
        manager.unsubscribe()
"""

import logging
import os
import threading
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

import requests
from lxml.etree import _Element
from requests.auth import HTTPBasicAuth
from requests.auth import HTTPDigestAuth

from onvifcore import config
from onvifcore.events import EventService
from onvifcore.events import SubscriptionManager
from onvifcore.lib import error
from onvifcore.lib.namespace import nsmap
from onvifcore.lib.url import fix_localhost_url
from onvifcore.lib.url import normalize_endpoint
from onvifcore.protocol.envelope import EnvelopeCodec
from onvifcore.protocol.types import Capabilities
from onvifcore.protocol.xml_builders import build_get_capabilities_body
from onvifcore.protocol.xml_parsers import parse_capabilities
from onvifcore.rpc import RPCDispatcher
from onvifcore.transport import Timeout
from onvifcore.transport import Transport

log = logging.getLogger(__name__)


class ONVIFClient:
    """
    Basic client for one ONVIF device.
    """

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Timeout = 30,
        ssl_verify_cert: Union[bool, str] = True,
        ssl_cert: Union[str, Tuple[str, str], None] = None,
        headers: Optional[Mapping[str, str]] = None,
        huge_tree: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Sets up a client object.

        Args:
            url: Device address.  A bare host or host:port is fine, http and
                the default path /onvif/device_service are assumed.
            username: Credentials for the WS-Security UsernameToken and
                for downloads.  No security header is sent without a username.
            password: See username
            timeout: Default timeout in seconds for each HTTP exchange
            ssl_verify_cert: Verify SSL certificates, or path of a CA bundle
            ssl_cert: Client certificate, passed on to requests
            headers: Extra HTTP headers for every request
            huge_tree: Allow very large XML responses
            session: An existing requests.Session to share.  It is not
                closed by close().

        Raises:
            InvalidEndpoint: url cannot be made sense of
        """
        self.url = normalize_endpoint(url)
        if isinstance(timeout, str):
            timeout = float(timeout)
        self.transport = Transport(
            session=session,
            timeout=timeout,
            verify=ssl_verify_cert,
            cert=ssl_cert,
            headers=headers,
        )
        self.codec = EnvelopeCodec(huge_tree=huge_tree)
        self.dispatcher = RPCDispatcher(
            self.transport, self.codec, username=username, password=password
        )
        self._endpoints: Dict[str, str] = {}
        self._endpoints_lock = threading.Lock()

    def __enter__(self) -> "ONVIFClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        """
        Closes the HTTP connection pool, if we own it.
        """
        self.transport.close()

    ## Credentials
    def set_credentials(self, username: Optional[str], password: Optional[str]) -> None:
        self.dispatcher.set_credentials(username, password)

    def get_credentials(self) -> Tuple[str, str]:
        return self.dispatcher.get_credentials()

    ## Endpoints
    def endpoint(self, service: str) -> str:
        """
        The endpoint for a service, i.e. "events".  Falls back to the
        device endpoint for services without an endpoint of their own.
        """
        with self._endpoints_lock:
            return self._endpoints.get(service, self.url)

    def set_endpoint(self, service: str, url: str) -> None:
        with self._endpoints_lock:
            self._endpoints[service] = url

    def set_event_endpoint(self, url: str) -> None:
        self.set_endpoint("events", url)

    def set_media_endpoint(self, url: str) -> None:
        self.set_endpoint("media", url)

    def set_ptz_endpoint(self, url: str) -> None:
        self.set_endpoint("ptz", url)

    def set_imaging_endpoint(self, url: str) -> None:
        self.set_endpoint("imaging", url)

    def initialize(self, cancel: Optional[threading.Event] = None) -> Capabilities:
        """
        Asks the device for its capabilities and picks the service
        endpoints from the answer.  Service addresses pointing to
        localhost are rewritten to the device host.

        Returns:
            The parsed capabilities
        """
        caps = self.dispatcher.call(
            self.url,
            "GetCapabilities",
            nsmap["tds"],
            build_get_capabilities_body(),
            parser=parse_capabilities,
            cancel=cancel,
        )
        for service, xaddr in caps.xaddrs.items():
            if service == "device":
                continue
            fixed = fix_localhost_url(xaddr, self.url)
            if fixed != xaddr:
                log.info("rewrote %s endpoint %s to %s" % (service, xaddr, fixed))
            self.set_endpoint(service, fixed)
        return caps

    ## Operations
    def call(
        self,
        service: str,
        operation: str,
        namespace: str,
        payload: Iterable = (),
        parser: Optional[Callable[[_Element], Any]] = None,
        timeout: Timeout = None,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        """
        Calls any operation on the endpoint of a service.  See
        RPCDispatcher.call() for the details.

        Example:
            client.call("ptz", "Stop", "http://www.onvif.org/ver20/ptz/wsdl",
                        [my_profile_token_element])
        """
        return self.dispatcher.call(
            self.endpoint(service),
            operation,
            namespace,
            payload,
            parser=parser,
            timeout=timeout,
            cancel=cancel,
        )

    def event_service(self) -> EventService:
        return EventService(self.dispatcher, self.endpoint("events"))

    def subscription_manager(self) -> SubscriptionManager:
        """
        A new SubscriptionManager on the events endpoint.  Each manager
        tracks one subscription.
        """
        return SubscriptionManager(self.dispatcher, self.endpoint("events"))

    def download_file(self, url: str) -> bytes:
        """
        Downloads i.e. a snapshot.  Basic auth is tried first, and Digest
        auth if the device answers 401.

        Raises:
            AuthorizationError: still 401/403 after trying both
            HTTPStatusError: other non-2xx answers
            TransportError: connection problems
        """
        username, password = self.get_credentials()
        auth = HTTPBasicAuth(username, password) if username else None
        r = self.transport.get(url, auth=auth)
        if r.status_code == 401 and username:
            log.debug("basic auth rejected, retrying download with digest auth")
            r = self.transport.get(url, auth=HTTPDigestAuth(username, password))

        if not 200 <= r.status_code < 300:
            if r.status_code in (401, 403):
                exc = error.AuthorizationError
            else:
                exc = error.HTTPStatusError
            raise exc(
                url=url,
                reason="download failed: %i %s" % (r.status_code, r.reason or ""),
                status=r.status_code,
                body=r.content,
            )
        return r.content


def get_client(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data,
) -> Optional[ONVIFClient]:
    """
    This function will yield an ONVIFClient object.  It will not try to
    connect (see initialize for that).  It will read configuration
    from various sources, dependent on the parameters given, in this
    order:

    * Data from the parameters given
    * Environment variables prepended with `ONVIF_`, like `ONVIF_URL`, `ONVIF_USERNAME`, `ONVIF_PASSWORD`, `ONVIF_TIMEOUT`.
    * Environment variables `ONVIF_CONFIG_FILE` and `ONVIF_CONFIG_SECTION` will be honored if environment is set
    * Configuration file, by default ~/.config/onvif/device.conf

    Returns None if no configuration was found.
    """
    if config_data:
        return ONVIFClient(**config_data)

    if environment:
        conf = {}
        for conf_key in (
            x
            for x in os.environ
            if x.startswith("ONVIF_") and not x.startswith("ONVIF_CONFIG")
        ):
            conf[conf_key[6:].lower()] = os.environ[conf_key]
        if conf:
            return ONVIFClient(**conf)
        if not config_file:
            config_file = os.environ.get("ONVIF_CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get("ONVIF_CONFIG_SECTION")

    if check_config_file:
        if not config_section:
            config_section = "default"

        cfg = config.read_config(config_file)
        if cfg:
            section = config.config_section(cfg, config_section)
            conn_params = config.connection_params(section)
            if conn_params:
                return ONVIFClient(**conn_params)
    return None
