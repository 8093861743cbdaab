"""
ONVIF event service: pull-point subscriptions and event brokers.

``SubscriptionManager`` is the state machine for one pull-point
subscription::

    UNSUBSCRIBED -> ACTIVE -> (RENEWING) -> ACTIVE -> ... -> UNSUBSCRIBED | EXPIRED

All argument validation happens before any network traffic.  Errors
from the peer surface as ``FaultError``, connection problems as
``TransportError``.  Nothing is retried.

``EventService`` holds the remaining, stateless operations of the
event service (capabilities, properties, event brokers).
"""

import logging
import threading
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from onvifcore.lib import error
from onvifcore.lib.namespace import nsmap
from onvifcore.protocol import xml_builders
from onvifcore.protocol import xml_parsers
from onvifcore.protocol.duration import as_timedelta
from onvifcore.protocol.types import EventBrokerConfig
from onvifcore.protocol.types import EventProperties
from onvifcore.protocol.types import EventServiceCapabilities
from onvifcore.protocol.types import NotificationMessage
from onvifcore.protocol.types import Subscription
from onvifcore.protocol.types import SubscriptionState
from onvifcore.rpc import RPCDispatcher

log = logging.getLogger(__name__)

EVENT_NAMESPACE = nsmap["tev"]
NOTIFICATION_NAMESPACE = nsmap["wsnt"]

Duration = Union[timedelta, int, float]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _positive(value: Optional[Duration]) -> bool:
    return value is not None and as_timedelta(value) > timedelta(0)


def _namespaces(dispatcher: RPCDispatcher) -> Tuple[str, str]:
    ## operation namespaces follow the mapping the codec was configured with
    mapping = dispatcher.codec.nsmap
    return (
        mapping.get("tev", EVENT_NAMESPACE),
        mapping.get("wsnt", NOTIFICATION_NAMESPACE),
    )


class EventService:
    """
    Stateless event service operations on one endpoint.
    """

    def __init__(self, dispatcher: RPCDispatcher, endpoint: str) -> None:
        self.dispatcher = dispatcher
        self.endpoint = endpoint
        self.event_namespace, _ = _namespaces(dispatcher)

    def get_service_capabilities(self, **kwargs) -> EventServiceCapabilities:
        return self.dispatcher.call(
            self.endpoint,
            "GetServiceCapabilities",
            self.event_namespace,
            parser=xml_parsers.parse_event_service_capabilities,
            **kwargs,
        )

    def get_event_properties(self, **kwargs) -> EventProperties:
        return self.dispatcher.call(
            self.endpoint,
            "GetEventProperties",
            self.event_namespace,
            parser=xml_parsers.parse_event_properties,
            **kwargs,
        )

    def add_event_broker(self, config: Optional[EventBrokerConfig], **kwargs) -> None:
        if config is None:
            raise error.EventBrokerConfigMissing(operation="AddEventBroker")
        if not config.address:
            raise error.InvalidEventBrokerAddress(operation="AddEventBroker")
        self.dispatcher.call(
            self.endpoint,
            "AddEventBroker",
            self.event_namespace,
            xml_builders.build_add_event_broker_body(config),
            **kwargs,
        )

    def delete_event_broker(self, address: str, **kwargs) -> None:
        if not address:
            raise error.InvalidEventBrokerAddress(operation="DeleteEventBroker")
        self.dispatcher.call(
            self.endpoint,
            "DeleteEventBroker",
            self.event_namespace,
            xml_builders.build_delete_event_broker_body(address),
            **kwargs,
        )

    def get_event_brokers(self, **kwargs) -> List[EventBrokerConfig]:
        return self.dispatcher.call(
            self.endpoint,
            "GetEventBrokers",
            self.event_namespace,
            parser=xml_parsers.parse_event_brokers,
            **kwargs,
        )


class SubscriptionManager:
    """
    Creates and drives one pull-point subscription.

    The manager is the only writer of its Subscription record.  All
    methods block, bounded by the client timeout (and, for pull, the
    pull timeout on top of it), and accept a ``cancel`` threading.Event
    which aborts the HTTP exchange.  A cancelled or failed call does not
    change the record.

    Methods taking a subscription_reference default to the reference of
    the subscription created by this manager.  Calls on other
    references are passed on to the peer but leave the record alone.

    Pulls on the same reference from several threads must be serialized
    by the caller; the protocol gives no ordering guarantees between them.
    """

    def __init__(
        self,
        dispatcher: RPCDispatcher,
        endpoint: str,
        http_timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            dispatcher: The RPC dispatcher to call through
            endpoint: Event service URL (where subscriptions are created)
            http_timeout: Added to the pull timeout to get the HTTP deadline of a pull
        """
        self.dispatcher = dispatcher
        self.endpoint = endpoint
        self.event_namespace, self.notification_namespace = _namespaces(dispatcher)
        if http_timeout is None:
            http_timeout = dispatcher.transport.timeout
        if isinstance(http_timeout, tuple):
            http_timeout = http_timeout[-1]
        self.http_timeout = http_timeout
        self.subscription: Optional[Subscription] = None

    @property
    def state(self) -> SubscriptionState:
        """Current state; ACTIVE turns into EXPIRED once the termination time passes"""
        sub = self.subscription
        if sub is None:
            return SubscriptionState.UNSUBSCRIBED
        if (
            sub.state == SubscriptionState.ACTIVE
            and sub.termination_time is not None
            and _utcnow() >= sub.termination_time
        ):
            sub.state = SubscriptionState.EXPIRED
        return sub.state

    def _reference(self, subscription_reference: Optional[str], operation: str) -> str:
        if subscription_reference is None and self.subscription is not None:
            subscription_reference = self.subscription.reference
        if not subscription_reference:
            raise error.InvalidSubscriptionReference(operation=operation)
        return subscription_reference

    def _tracked(self, subscription_reference: str) -> Optional[Subscription]:
        if self.subscription is not None and (
            self.subscription.reference == subscription_reference
        ):
            return self.subscription
        return None

    def create(
        self,
        filter_expression: str = "",
        requested_termination_time: Optional[Duration] = None,
        policy: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Subscription:
        """
        Creates a pull-point subscription (CreatePullPointSubscription).

        Args:
            filter_expression: Topic expression, i.e. "tns1:VideoSource//.", empty for all events
            requested_termination_time: Relative lifetime; the peer default if None
            policy: Subscription policy, passed on verbatim
            cancel: threading.Event aborting the call

        Returns:
            The new Subscription, also available as self.subscription
        """
        operation = "CreatePullPointSubscription"
        if requested_termination_time is not None and not _positive(
            requested_termination_time
        ):
            raise error.InvalidTerminationTime(operation=operation)
        requested = as_timedelta(requested_termination_time)

        subscription = self.dispatcher.call(
            self.endpoint,
            operation,
            self.event_namespace,
            xml_builders.build_create_pull_point_subscription_body(
                filter_expression, requested, policy
            ),
            parser=xml_parsers.parse_create_pull_point_subscription,
            cancel=cancel,
        )
        now = _utcnow()
        if subscription.termination_time is None and requested is not None:
            error.weirdness("%s response without TerminationTime" % operation)
            subscription.termination_time = (subscription.current_time or now) + requested
        subscription.filter = filter_expression or None
        subscription.state = SubscriptionState.ACTIVE
        subscription.created_at = now
        self.subscription = subscription
        log.info(
            "subscription %s created, terminates %s"
            % (subscription.reference, subscription.termination_time)
        )
        return subscription

    def pull(
        self,
        subscription_reference: Optional[str] = None,
        timeout: Duration = timedelta(seconds=10),
        message_limit: int = 100,
        cancel: Optional[threading.Event] = None,
    ) -> List[NotificationMessage]:
        """
        Pulls messages (PullMessages).  The peer holds the request for up
        to timeout until at least one message is available or
        message_limit messages have accumulated.

        Returns:
            Between 0 and message_limit messages.  No messages is not an error.
        """
        operation = "PullMessages"
        subscription_reference = self._reference(subscription_reference, operation)
        if not _positive(timeout):
            raise error.InvalidTimeout(operation=operation)
        if message_limit is None or message_limit <= 0:
            raise error.InvalidMessageLimit(operation=operation)
        timeout = as_timedelta(timeout)

        http_timeout = None
        if self.http_timeout is not None:
            http_timeout = timeout.total_seconds() + self.http_timeout
        result = self.dispatcher.call(
            subscription_reference,
            operation,
            self.event_namespace,
            xml_builders.build_pull_messages_body(timeout, message_limit),
            parser=xml_parsers.parse_pull_messages,
            timeout=http_timeout,
            cancel=cancel,
        )
        if len(result.messages) > message_limit:
            error.weirdness(
                "got %i messages, asked for at most %i"
                % (len(result.messages), message_limit)
            )
        tracked = self._tracked(subscription_reference)
        if tracked is not None and result.current_time is not None:
            tracked.current_time = result.current_time
        return result.messages

    def renew(
        self,
        subscription_reference: Optional[str] = None,
        extension: Optional[Duration] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """
        Extends the subscription (Renew).  Delivery state is kept.

        Returns:
            (current_time, new_termination_time) as reported by the peer
        """
        operation = "Renew"
        subscription_reference = self._reference(subscription_reference, operation)
        if not _positive(extension):
            raise error.InvalidTerminationTime(operation=operation)
        extension = as_timedelta(extension)

        tracked = self._tracked(subscription_reference)
        previous_state = None
        if tracked is not None:
            previous_state = tracked.state
            tracked.state = SubscriptionState.RENEWING
        try:
            result = self.dispatcher.call(
                subscription_reference,
                operation,
                self.notification_namespace,
                xml_builders.build_renew_body(extension),
                parser=xml_parsers.parse_renew,
                cancel=cancel,
            )
        except error.ONVIFError:
            if tracked is not None:
                tracked.state = previous_state
            raise

        current_time = result.current_time
        termination_time = result.termination_time
        if termination_time is None:
            error.weirdness("%s response without TerminationTime" % operation)
            termination_time = (current_time or _utcnow()) + extension
        if tracked is not None:
            if current_time is not None:
                tracked.current_time = current_time
            tracked.termination_time = termination_time
            tracked.state = SubscriptionState.ACTIVE
        return current_time, termination_time

    def seek(
        self,
        subscription_reference: Optional[str] = None,
        utc_time: Optional[datetime] = None,
        reverse: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Moves the delivery cursor of the pull point to utc_time (Seek).
        With reverse, messages are delivered backwards from that point.
        """
        operation = "Seek"
        subscription_reference = self._reference(subscription_reference, operation)
        if utc_time is None:
            utc_time = _utcnow()
        self.dispatcher.call(
            subscription_reference,
            operation,
            self.event_namespace,
            xml_builders.build_seek_body(utc_time, reverse),
            cancel=cancel,
        )

    def set_synchronization_point(
        self,
        subscription_reference: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Asks the peer to (re)send the current state of all properties,
        so that later pulls are no staler than this point.
        """
        operation = "SetSynchronizationPoint"
        subscription_reference = self._reference(subscription_reference, operation)
        self.dispatcher.call(
            subscription_reference,
            operation,
            self.event_namespace,
            cancel=cancel,
        )

    def unsubscribe(
        self,
        subscription_reference: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Terminates the subscription early (Unsubscribe)"""
        operation = "Unsubscribe"
        subscription_reference = self._reference(subscription_reference, operation)
        self.dispatcher.call(
            subscription_reference,
            operation,
            self.notification_namespace,
            cancel=cancel,
        )
        tracked = self._tracked(subscription_reference)
        if tracked is not None:
            tracked.state = SubscriptionState.UNSUBSCRIBED
            log.info("subscription %s terminated" % subscription_reference)
