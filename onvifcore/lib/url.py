#!/usr/bin/env python
from typing import Optional
from urllib.parse import urlsplit
from urllib.parse import urlunsplit

from onvifcore.lib import error

DEFAULT_SERVICE_PATH = "/onvif/device_service"

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "::1")


def normalize_endpoint(endpoint: str) -> str:
    """
    Turns whatever the user gave us into a full device service URL.

    The endpoint may be given as

    1) a full URL, i.e. "http://192.168.1.100/onvif/device_service".
    If the path is empty or "/", the default ONVIF path is added.

    2) a host with port, i.e. "192.168.1.100:8080" or "camera.local:80".
    http is assumed and the default ONVIF path is added.

    3) a bare host, i.e. "192.168.1.100" or "camera.local".
    """
    if not endpoint:
        raise error.InvalidEndpoint(reason="empty endpoint")
    if endpoint.startswith("http://") or endpoint.startswith("https://"):
        parts = urlsplit(endpoint)
        if not parts.netloc:
            raise error.InvalidEndpoint(url=endpoint, reason="URL missing host")
        path = parts.path
        if path in ("", "/"):
            path = DEFAULT_SERVICE_PATH
        return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))

    if "://" in endpoint or "/" in endpoint or " " in endpoint:
        raise error.InvalidEndpoint(url=endpoint, reason="invalid endpoint format")
    full_url = "http://" + endpoint + DEFAULT_SERVICE_PATH
    try:
        ## port validation happens lazily in urllib
        parts = urlsplit(full_url)
        parts.port
    except ValueError as e:
        raise error.InvalidEndpoint(
            url=endpoint, reason="invalid IP address or hostname: %s" % e
        ) from e
    if not parts.hostname:
        raise error.InvalidEndpoint(url=endpoint, reason="invalid endpoint format")
    return full_url


def fix_localhost_url(service_url: Optional[str], device_url: str) -> Optional[str]:
    """
    Some cameras report localhost (127.0.0.1, 0.0.0.0, ...) in the
    service addresses of their capabilities.  Replace the host with the
    one we actually talk to.  The port of the service URL is kept if
    given, otherwise the port of the device URL is used.
    """
    if not service_url:
        return service_url
    try:
        service = urlsplit(service_url)
        host = service.hostname
        service_port = service.port
    except ValueError:
        return service_url
    if host not in LOOPBACK_HOSTS:
        return service_url

    device = urlsplit(device_url)
    netloc = device.hostname or ""
    if ":" in netloc:
        netloc = "[%s]" % netloc
    port = service_port or device.port
    if port:
        netloc = "%s:%s" % (netloc, port)
    return urlunsplit(
        (service.scheme, netloc, service.path, service.query, service.fragment)
    )
