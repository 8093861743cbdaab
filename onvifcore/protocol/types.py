"""
Core protocol types.

These dataclasses represent what goes over the wire and what comes back,
independent of any I/O implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Fault:
    """
    A SOAP fault as returned by the peer.

    Attributes:
        code: Fault code value, i.e. "env:Sender" or "env:Receiver"
        reason: Human readable reason text
        subcode: Innermost subcode value, i.e. "ter:NotAuthorized" (optional)
        detail: Text content of the Detail element (optional)
    """

    code: str
    reason: str
    subcode: Optional[str] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class SecurityToken:
    """
    A WS-Security UsernameToken.  One is generated right before each
    request and thrown away afterwards.

    Attributes:
        username: The user name, sent in clear text
        nonce: The raw random bytes (Base64-encoded on the wire)
        created: Creation time, RFC3339 with second precision in UTC
        digest: Base64(SHA1(nonce + created + password))
    """

    username: str
    nonce: bytes
    created: str
    digest: str


class SubscriptionState(Enum):
    """Lifecycle states of a pull-point subscription."""

    UNSUBSCRIBED = "unsubscribed"
    ACTIVE = "active"
    RENEWING = "renewing"
    EXPIRED = "expired"


@dataclass
class Subscription:
    """
    One pull-point subscription, as seen by the client.

    Attributes:
        reference: Address of the subscription manager endpoint
        current_time: Peer clock at the last exchange
        termination_time: Absolute expiry, moved forward only by renew
        filter: Topic filter expression the subscription was created with
        state: Lifecycle state
        created_at: Local clock when the subscription was created
    """

    reference: str
    current_time: Optional[datetime] = None
    termination_time: Optional[datetime] = None
    filter: Optional[str] = None
    state: SubscriptionState = SubscriptionState.ACTIVE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NotificationMessage:
    """
    One event delivered through a pull point.

    Attributes:
        topic: Topic, i.e. "tns1:VideoSource/MotionAlarm"
        producer: Address of the producer (may be empty)
        property_operation: Changed, Initialized or Deleted (may be empty)
        utc_time: When the event happened (timezone-aware, UTC)
        source: SimpleItems identifying the source
        key: SimpleItems identifying the property
        data: SimpleItems carrying the payload
    """

    topic: str
    producer: str = ""
    property_operation: str = ""
    utc_time: Optional[datetime] = None
    source: Dict[str, str] = field(default_factory=dict)
    key: Dict[str, str] = field(default_factory=dict)
    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class PullMessagesResult:
    """Parsed PullMessagesResponse."""

    current_time: Optional[datetime] = None
    termination_time: Optional[datetime] = None
    messages: List[NotificationMessage] = field(default_factory=list)


@dataclass
class EventServiceCapabilities:
    ws_subscription_policy_support: bool = False
    ws_pausable_subscription_manager_interface_support: bool = False
    max_notification_producers: int = 0
    max_pull_points: int = 0
    persistent_notification_storage: bool = False
    event_broker_protocols: List[str] = field(default_factory=list)
    max_event_brokers: int = 0
    metadata_over_mqtt: bool = False


@dataclass
class EventProperties:
    topic_namespace_location: List[str] = field(default_factory=list)
    fixed_topic_set: bool = False
    topic_expression_dialects: List[str] = field(default_factory=list)
    message_content_filter_dialects: List[str] = field(default_factory=list)
    producer_properties_filter_dialects: List[str] = field(default_factory=list)
    message_content_schema_location: List[str] = field(default_factory=list)


@dataclass
class EventBrokerConfig:
    address: str
    topic_prefix: str = ""
    username: str = ""
    password: str = ""
    certificate_id: str = ""
    publish_filter: str = ""
    qos: int = 0
    status: str = ""
    cert_path_validation: bool = False
    metadata_filter: str = ""


@dataclass
class Capabilities:
    """
    Service addresses found in a GetCapabilitiesResponse.

    Attributes:
        xaddrs: Service category (lower case, i.e. "events") -> XAddr
    """

    xaddrs: Dict[str, str] = field(default_factory=dict)
