"""
Pure functions for parsing the body element of event service responses.

All functions take the lxml element found in the SOAP Body and return
structured data.  Elements are matched on local name only, and unknown
elements are ignored, as peers differ a lot in namespace usage and
vendor extensions.
"""

from datetime import datetime
from datetime import timezone
from typing import Dict
from typing import List
from typing import Optional

from lxml.etree import _Element

from onvifcore.lib import error
from onvifcore.lib.namespace import child_text
from onvifcore.lib.namespace import find_child
from onvifcore.lib.namespace import find_children
from onvifcore.lib.namespace import localname
from onvifcore.protocol.types import Capabilities
from onvifcore.protocol.types import EventBrokerConfig
from onvifcore.protocol.types import EventProperties
from onvifcore.protocol.types import EventServiceCapabilities
from onvifcore.protocol.types import NotificationMessage
from onvifcore.protocol.types import PullMessagesResult
from onvifcore.protocol.types import Subscription


def _bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("true", "1")


def _int(value: Optional[str]) -> int:
    try:
        return int((value or "0").strip())
    except ValueError:
        error.weirdness("expected an integer, got %r" % value)
        return 0


def parse_utc_time(value: Optional[str]) -> Optional[datetime]:
    """
    Parses an xs:dateTime.  Returns a timezone-aware datetime in UTC, or
    None if value is empty or unparseable (the latter is logged).
    Naive timestamps are taken as UTC.
    """
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z") or value.endswith("z"):
        value = value[:-1] + "+00:00"
    try:
        t = datetime.fromisoformat(value)
    except ValueError:
        error.weirdness("unparseable timestamp %r" % value)
        return None
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def _address(elem: Optional[_Element]) -> str:
    """Text of the wsa:Address below an endpoint reference"""
    return child_text(elem, "Address")


def parse_capabilities(elem: _Element) -> Capabilities:
    caps = Capabilities()
    for service in find_children(elem, "Capabilities"):
        for category in service:
            xaddr = child_text(category, "XAddr")
            if xaddr:
                caps.xaddrs[localname(category.tag).lower()] = xaddr
    return caps


def parse_create_pull_point_subscription(elem: _Element) -> Subscription:
    reference = _address(find_child(elem, "SubscriptionReference"))
    if not reference:
        raise ValueError("no SubscriptionReference address in response")
    return Subscription(
        reference=reference,
        current_time=parse_utc_time(child_text(elem, "CurrentTime")),
        termination_time=parse_utc_time(child_text(elem, "TerminationTime")),
    )


def _simple_items(elem: Optional[_Element]) -> Dict[str, str]:
    items: Dict[str, str] = {}
    for item in find_children(elem, "SimpleItem"):
        items[item.get("Name", "")] = item.get("Value", "")
    return items


def parse_notification_message(elem: _Element) -> NotificationMessage:
    message = find_child(elem, "Message")
    ## The wsnt:Message wraps a tt:Message carrying the attributes
    inner = find_child(message, "Message")
    if inner is None:
        inner = message
    if inner is None:
        error.weirdness("NotificationMessage without Message", elem)
    attrs = inner.attrib if inner is not None else {}
    return NotificationMessage(
        topic=child_text(elem, "Topic"),
        producer=_address(find_child(elem, "ProducerReference")),
        property_operation=attrs.get("PropertyOperation", ""),
        utc_time=parse_utc_time(attrs.get("UtcTime")),
        source=_simple_items(find_child(inner, "Source")),
        key=_simple_items(find_child(inner, "Key")),
        data=_simple_items(find_child(inner, "Data")),
    )


def parse_pull_messages(elem: _Element) -> PullMessagesResult:
    return PullMessagesResult(
        current_time=parse_utc_time(child_text(elem, "CurrentTime")),
        termination_time=parse_utc_time(child_text(elem, "TerminationTime")),
        messages=[
            parse_notification_message(x)
            for x in find_children(elem, "NotificationMessage")
        ],
    )


def parse_renew(elem: _Element) -> PullMessagesResult:
    """RenewResponse carries the same two timestamps as PullMessagesResponse"""
    return PullMessagesResult(
        current_time=parse_utc_time(child_text(elem, "CurrentTime")),
        termination_time=parse_utc_time(child_text(elem, "TerminationTime")),
    )


def parse_event_service_capabilities(elem: _Element) -> EventServiceCapabilities:
    caps = find_child(elem, "Capabilities")
    if caps is None:
        raise ValueError("no Capabilities in response")
    a = caps.attrib
    return EventServiceCapabilities(
        ws_subscription_policy_support=_bool(a.get("WSSubscriptionPolicySupport")),
        ws_pausable_subscription_manager_interface_support=_bool(
            a.get("WSPausableSubscriptionManagerInterfaceSupport")
        ),
        max_notification_producers=_int(a.get("MaxNotificationProducers")),
        max_pull_points=_int(a.get("MaxPullPoints")),
        persistent_notification_storage=_bool(a.get("PersistentNotificationStorage")),
        event_broker_protocols=(a.get("EventBrokerProtocols") or "").split(),
        max_event_brokers=_int(a.get("MaxEventBrokers")),
        metadata_over_mqtt=_bool(a.get("MetadataOverMQTT")),
    )


def parse_event_properties(elem: _Element) -> EventProperties:
    def texts(name):
        return [child_text(x) for x in find_children(elem, name) if child_text(x)]

    return EventProperties(
        topic_namespace_location=texts("TopicNamespaceLocation"),
        fixed_topic_set=_bool(child_text(elem, "FixedTopicSet")),
        topic_expression_dialects=texts("TopicExpressionDialect"),
        message_content_filter_dialects=texts("MessageContentFilterDialect"),
        producer_properties_filter_dialects=texts("ProducerPropertiesFilterDialect"),
        message_content_schema_location=texts("MessageContentSchemaLocation"),
    )


def parse_event_brokers(elem: _Element) -> List[EventBrokerConfig]:
    return [
        EventBrokerConfig(
            address=child_text(eb, "Address"),
            topic_prefix=child_text(eb, "TopicPrefix"),
            username=child_text(eb, "UserName"),
            password=child_text(eb, "Password"),
            certificate_id=child_text(eb, "CertificateID"),
            publish_filter=child_text(eb, "PublishFilter"),
            qos=_int(child_text(eb, "QoS")),
            status=child_text(eb, "Status"),
            cert_path_validation=_bool(child_text(eb, "CertPathValidation")),
            metadata_filter=child_text(eb, "MetadataFilter"),
        )
        for eb in find_children(elem, "EventBroker")
    ]
