"""
Pure functions for building the payload of event service requests.

Each function returns the list of child elements of the operation
element; the operation element itself and the envelope are added by
EnvelopeCodec.encode().
"""
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import List
from typing import Optional

from onvifcore.elements import tds
from onvifcore.elements import tev
from onvifcore.elements import wsnt
from onvifcore.elements.base import BaseElement
from onvifcore.protocol.duration import format_duration
from onvifcore.protocol.types import EventBrokerConfig


def format_utc_time(t: datetime) -> str:
    """RFC3339 with second precision, in UTC.  Naive datetimes are taken as UTC."""
    if t.tzinfo is not None:
        t = t.astimezone(timezone.utc)
    return t.strftime("%Y-%m-%dT%H:%M:%SZ")


def build_get_capabilities_body(category: str = "All") -> List[BaseElement]:
    return [tds.Category(category)]


def build_create_pull_point_subscription_body(
    filter_expression: str = "",
    initial_termination_time: Optional[timedelta] = None,
    subscription_policy: Optional[str] = None,
) -> List[BaseElement]:
    """
    Args:
        filter_expression: Topic expression, no filter if empty
        initial_termination_time: Relative lifetime of the subscription
        subscription_policy: Passed on verbatim if given
    """
    children: List[BaseElement] = []
    if filter_expression:
        children.append(tev.Filter() + wsnt.TopicExpression(filter_expression))
    if initial_termination_time is not None:
        children.append(
            tev.InitialTerminationTime(format_duration(initial_termination_time))
        )
    if subscription_policy:
        children.append(tev.SubscriptionPolicy(subscription_policy))
    return children


def build_pull_messages_body(timeout: timedelta, message_limit: int) -> List[BaseElement]:
    return [tev.Timeout(format_duration(timeout)), tev.MessageLimit(message_limit)]


def build_renew_body(termination_time: timedelta) -> List[BaseElement]:
    return [wsnt.TerminationTime(format_duration(termination_time))]


def build_seek_body(utc_time: datetime, reverse: bool = False) -> List[BaseElement]:
    children: List[BaseElement] = [tev.UtcTime(format_utc_time(utc_time))]
    if reverse:
        children.append(tev.Reverse(True))
    return children


def build_add_event_broker_body(config: EventBrokerConfig) -> List[BaseElement]:
    broker = tev.EventBrokerConfig() + tev.Address(config.address)
    ## optional fields are only sent when set
    optional = (
        (tev.TopicPrefix, config.topic_prefix),
        (tev.UserName, config.username),
        (tev.Password, config.password),
        (tev.CertificateID, config.certificate_id),
        (tev.PublishFilter, config.publish_filter),
        (tev.QoS, config.qos),
        (tev.CertPathValidation, config.cert_path_validation),
        (tev.MetadataFilter, config.metadata_filter),
    )
    for cls, value in optional:
        if value:
            broker += cls(value)
    return [broker]


def build_delete_event_broker_body(address: str) -> List[BaseElement]:
    return [tev.Address(address)]
