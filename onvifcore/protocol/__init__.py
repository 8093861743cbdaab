"""
Sans-I/O ONVIF protocol implementation.

This module provides protocol-level building blocks without any I/O.
It builds requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (Fault, SecurityToken, Subscription, ...)
- envelope: EnvelopeCodec, wrapping requests in and unwrapping responses from SOAP envelopes
- security: WS-Security UsernameToken generation
- duration: xs:duration tokens <-> timedelta
- xml_builders: Pure functions to build request payloads
- xml_parsers: Pure functions to parse response bodies

Example usage:

    from onvifcore.protocol import EnvelopeCodec, generate_token
    from onvifcore.protocol.xml_parsers import parse_pull_messages
    from onvifcore.lib.namespace import nsmap

    codec = EnvelopeCodec()
    body = codec.encode("PullMessages", nsmap["tev"], payload, generate_token("admin", "secret"))

    # Execute via your preferred I/O
    response = your_http_client.post(url, body)

    result = codec.decode(response, parse_pull_messages)
"""

from .types import (
    Capabilities,
    EventBrokerConfig,
    EventProperties,
    EventServiceCapabilities,
    Fault,
    NotificationMessage,
    PullMessagesResult,
    SecurityToken,
    Subscription,
    SubscriptionState,
)
from .duration import format_duration, parse_duration
from .security import compute_digest, generate_token, verify_token
from .envelope import EnvelopeCodec

__all__ = [
    # Types
    "Capabilities",
    "EventBrokerConfig",
    "EventProperties",
    "EventServiceCapabilities",
    "Fault",
    "NotificationMessage",
    "PullMessagesResult",
    "SecurityToken",
    "Subscription",
    "SubscriptionState",
    # Codecs
    "EnvelopeCodec",
    "format_duration",
    "parse_duration",
    # Security
    "compute_digest",
    "generate_token",
    "verify_token",
]
