"""
Tests for the pull-point subscription lifecycle and the event service.

Most tests run against FakeDevice, which routes the real Transport's
requests through a SOAPHandler.

Rule: no internet.
"""

import threading
from datetime import timedelta
from unittest import mock

import pytest
from lxml import etree

from onvifcore.events import EventService
from onvifcore.events import SubscriptionManager
from onvifcore.lib import error
from onvifcore.lib.namespace import nsmap
from onvifcore.lib.namespace import SOAP12
from onvifcore.protocol.envelope import EnvelopeCodec
from onvifcore.protocol.types import EventBrokerConfig
from onvifcore.protocol.types import SubscriptionState
from onvifcore.rpc import RPCDispatcher
from onvifcore.transport import Transport

from .fake_device import FakeDevice

EVENTS_URL = "http://host/onvif/events"


@pytest.fixture
def device():
    return FakeDevice(base_url="http://host")


@pytest.fixture
def dispatcher(device):
    return RPCDispatcher(Transport(session=device, timeout=5))


@pytest.fixture
def manager(dispatcher):
    return SubscriptionManager(dispatcher, EVENTS_URL)


def sent_operation(device, index=-1):
    url, body = device.requests[index]
    root = etree.fromstring(body)
    return url, root.find("{%s}Body" % SOAP12)[0]


class TestValidation:
    """Invalid arguments are refused before anything goes over the wire"""

    @pytest.fixture
    def transport(self):
        return mock.MagicMock()

    @pytest.fixture
    def manager(self, transport):
        transport.timeout = 5
        return SubscriptionManager(RPCDispatcher(transport), EVENTS_URL)

    @pytest.mark.parametrize("value", [0, -1, timedelta(0), timedelta(seconds=-5)])
    def test_create_with_non_positive_termination_time(self, manager, transport, value):
        with pytest.raises(error.InvalidTerminationTime) as e:
            manager.create(requested_termination_time=value)
        assert e.value.operation == "CreatePullPointSubscription"
        transport.send.assert_not_called()
        assert manager.subscription is None

    @pytest.mark.parametrize("value", [None, 0, timedelta(seconds=-1)])
    def test_renew_with_non_positive_extension(self, manager, transport, value):
        with pytest.raises(error.InvalidTerminationTime):
            manager.renew("http://host/subscription/1", value)
        transport.send.assert_not_called()

    @pytest.mark.parametrize("method", ["pull", "renew", "seek", "set_synchronization_point", "unsubscribe"])
    def test_empty_reference(self, manager, transport, method):
        with pytest.raises(error.InvalidSubscriptionReference):
            getattr(manager, method)("")
        ## no subscription created yet, so there is no default either
        with pytest.raises(error.InvalidSubscriptionReference):
            getattr(manager, method)()
        transport.send.assert_not_called()

    @pytest.mark.parametrize("timeout", [0, -10, timedelta(0), None])
    def test_pull_with_non_positive_timeout(self, manager, transport, timeout):
        with pytest.raises(error.InvalidTimeout):
            manager.pull("http://host/subscription/1", timeout=timeout)
        transport.send.assert_not_called()

    @pytest.mark.parametrize("limit", [0, -1, None])
    def test_pull_with_non_positive_limit(self, manager, transport, limit):
        with pytest.raises(error.InvalidMessageLimit):
            manager.pull("http://host/subscription/1", message_limit=limit)
        transport.send.assert_not_called()

    def test_validation_errors_are_value_errors(self, manager):
        with pytest.raises(ValueError):
            manager.pull("http://host/subscription/1", message_limit=0)

    def test_event_broker(self, transport):
        service = EventService(RPCDispatcher(transport), EVENTS_URL)
        with pytest.raises(error.EventBrokerConfigMissing):
            service.add_event_broker(None)
        with pytest.raises(error.InvalidEventBrokerAddress):
            service.add_event_broker(EventBrokerConfig(address=""))
        with pytest.raises(error.InvalidEventBrokerAddress):
            service.delete_event_broker("")
        transport.send.assert_not_called()


class TestLifecycle:
    def test_create(self, manager, device):
        assert manager.state == SubscriptionState.UNSUBSCRIBED
        sub = manager.create("tns1:VideoSource//.", requested_termination_time=60)

        assert sub.reference == "http://host/subscription/1"
        assert sub.current_time == device.now
        assert sub.termination_time == device.now + timedelta(seconds=60)
        assert sub.filter == "tns1:VideoSource//."
        assert sub.created_at is not None
        assert manager.subscription is sub
        assert manager.state == SubscriptionState.ACTIVE

        url, op = sent_operation(device)
        assert url == EVENTS_URL
        assert op.tag == "{%s}CreatePullPointSubscription" % nsmap["tev"]
        assert op.findtext("{%s}InitialTerminationTime" % nsmap["tev"]) == "PT1M"
        assert (
            op.findtext("{%s}Filter/{%s}TopicExpression" % (nsmap["tev"], nsmap["wsnt"]))
            == "tns1:VideoSource//."
        )

    def test_create_without_filter_and_lifetime(self, manager, device):
        manager.create()
        url, op = sent_operation(device)
        assert len(op) == 0
        assert manager.subscription.filter is None

    def test_create_then_renew(self, manager, device):
        sub = manager.create(requested_termination_time=timedelta(seconds=60))
        assert sub.termination_time == sub.current_time + timedelta(seconds=60)

        current, termination = manager.renew(extension=timedelta(seconds=120))
        assert current == device.now
        assert termination == current + timedelta(seconds=120)
        assert manager.subscription.termination_time == termination
        assert manager.state == SubscriptionState.ACTIVE

        url, op = sent_operation(device)
        assert url == "http://host/subscription/1"
        assert op.tag == "{%s}Renew" % nsmap["wsnt"]
        assert op.findtext("{%s}TerminationTime" % nsmap["wsnt"]) == "PT2M"

    def test_renew_without_termination_time_in_answer(self, manager, device):
        manager.create(requested_termination_time=60)
        device.renew_omits_termination_time = True
        current, termination = manager.renew(extension=120)
        assert termination == device.now + timedelta(seconds=120)

    def test_renew_failure_restores_state(self, manager, device):
        manager.create(requested_termination_time=60)
        termination = manager.subscription.termination_time
        del device.subscriptions["http://host/subscription/1"]
        with pytest.raises(error.FaultError):
            manager.renew(extension=120)
        assert manager.state == SubscriptionState.ACTIVE
        assert manager.subscription.termination_time == termination

    def test_pull_nothing(self, manager, device):
        manager.create(requested_termination_time=60)
        assert manager.pull(timeout=1, message_limit=10) == []

    def test_pull(self, manager, device):
        manager.create(requested_termination_time=60)
        for i in range(15):
            device.queue_event(
                "tns1:VideoSource/MotionAlarm",
                data={"State": "true"},
                source={"VideoSourceToken": "vs%i" % i},
            )

        messages = manager.pull(timeout=timedelta(seconds=2), message_limit=10)
        assert len(messages) == 10
        first = messages[0]
        assert first.topic == "tns1:VideoSource/MotionAlarm"
        assert first.data == {"State": "true"}
        assert first.source == {"VideoSourceToken": "vs0"}
        assert first.property_operation == "Changed"
        assert first.utc_time == device.now
        assert first.producer == "http://host/onvif/events"

        url, op = sent_operation(device)
        assert url == "http://host/subscription/1"
        assert op.tag == "{%s}PullMessages" % nsmap["tev"]
        assert op.findtext("{%s}Timeout" % nsmap["tev"]) == "PT2S"
        assert op.findtext("{%s}MessageLimit" % nsmap["tev"]) == "10"

        assert len(manager.pull(timeout=2, message_limit=10)) == 5

    def test_pull_does_not_touch_termination_time(self, manager, device):
        sub = manager.create(requested_termination_time=60)
        termination = sub.termination_time
        device.subscriptions[sub.reference] = termination + timedelta(hours=1)
        manager.pull(timeout=1, message_limit=1)
        assert sub.termination_time == termination

    def test_pull_http_timeout_covers_pull_timeout(self, device):
        transport = Transport(session=device, timeout=5)
        manager = SubscriptionManager(RPCDispatcher(transport), EVENTS_URL)
        manager.create()
        with mock.patch.object(device, "post", wraps=device.post) as post:
            manager.pull(timeout=20, message_limit=1)
        assert post.call_args[1]["timeout"] == 25

    def test_unsubscribe_then_pull(self, manager, device):
        manager.create(requested_termination_time=60)
        manager.unsubscribe()
        assert manager.state == SubscriptionState.UNSUBSCRIBED
        url, op = sent_operation(device)
        assert url == "http://host/subscription/1"
        assert op.tag == "{%s}Unsubscribe" % nsmap["wsnt"]

        with pytest.raises(error.FaultError) as e:
            manager.pull(timeout=1, message_limit=1)
        assert e.value.subcode == "ter:InvalidArgVal"
        assert e.value.operation == "PullMessages"

    def test_seek(self, manager, device):
        manager.create()
        manager.seek(utc_time=device.now - timedelta(minutes=5), reverse=True)
        url, op = sent_operation(device)
        assert url == "http://host/subscription/1"
        assert op.tag == "{%s}Seek" % nsmap["tev"]
        assert op.findtext("{%s}Reverse" % nsmap["tev"]) == "true"
        assert op.findtext("{%s}UtcTime" % nsmap["tev"]).endswith("Z")

    def test_set_synchronization_point(self, manager, device):
        manager.create()
        manager.set_synchronization_point()
        assert device.calls[-1] == (
            "SetSynchronizationPoint",
            "http://host/subscription/1",
        )

    def test_expiry(self, manager, device):
        sub = manager.create(requested_termination_time=60)
        sub.termination_time = device.now - timedelta(seconds=1)
        assert manager.state == SubscriptionState.EXPIRED

    def test_other_reference_leaves_record_alone(self, manager, device):
        manager.create(requested_termination_time=60)
        other = SubscriptionManager(manager.dispatcher, EVENTS_URL).create(
            requested_termination_time=60
        )
        manager.unsubscribe(other.reference)
        assert manager.state == SubscriptionState.ACTIVE
        assert other.reference not in device.subscriptions

    def test_cancelled_create_records_nothing(self, manager, device):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(error.CancelledError):
            manager.create(cancel=cancel)
        assert manager.subscription is None
        assert device.requests == []


class TestEventService:
    @pytest.fixture
    def service(self, dispatcher):
        return EventService(dispatcher, EVENTS_URL)

    def test_get_service_capabilities(self, service):
        caps = service.get_service_capabilities()
        assert caps.ws_subscription_policy_support
        assert not caps.ws_pausable_subscription_manager_interface_support
        assert caps.max_pull_points == 5
        assert caps.max_notification_producers == 10
        assert caps.event_broker_protocols == ["mqtt", "mqtts"]
        assert caps.max_event_brokers == 2

    def test_get_event_properties(self, service):
        props = service.get_event_properties()
        assert props.fixed_topic_set
        assert props.topic_namespace_location == [
            "http://www.onvif.org/onvif/ver10/topics/topicns.xml"
        ]
        assert len(props.topic_expression_dialects) == 2

    def test_event_brokers(self, service, device):
        service.add_event_broker(
            EventBrokerConfig(
                address="mqtt://broker.local:1883",
                topic_prefix="cameras/door",
                qos=1,
            )
        )
        brokers = service.get_event_brokers()
        assert len(brokers) == 1
        assert brokers[0].address == "mqtt://broker.local:1883"
        assert brokers[0].topic_prefix == "cameras/door"
        assert brokers[0].qos == 1
        assert brokers[0].username == ""

        service.delete_event_broker("mqtt://broker.local:1883")
        assert service.get_event_brokers() == []

    def test_too_many_event_brokers(self, service):
        service.add_event_broker(EventBrokerConfig(address="mqtt://a"))
        service.add_event_broker(EventBrokerConfig(address="mqtt://b"))
        with pytest.raises(error.FaultError) as e:
            service.add_event_broker(EventBrokerConfig(address="mqtt://c"))
        assert e.value.status == 500
        assert e.value.subcode == "ter:MaxEventBrokers"

    def test_delete_unknown_event_broker(self, service):
        with pytest.raises(error.FaultError) as e:
            service.delete_event_broker("mqtt://nowhere")
        assert e.value.status == 400
        assert e.value.operation == "DeleteEventBroker"


class TestNamespaces:
    """Operation namespaces follow the codec configuration"""

    TEV = "http://example.com/onvif/events/wsdl"
    WSNT = "http://example.com/wsn/b-2"

    @pytest.fixture
    def custom(self, device):
        codec = EnvelopeCodec(nsmap=dict(nsmap, tev=self.TEV, wsnt=self.WSNT))
        return RPCDispatcher(Transport(session=device, timeout=5), codec)

    def test_defaults(self, manager):
        assert manager.event_namespace == nsmap["tev"]
        assert manager.notification_namespace == nsmap["wsnt"]

    def test_event_operations(self, custom, device):
        EventService(custom, EVENTS_URL).get_event_properties()
        url, op = sent_operation(device)
        assert op.tag == "{%s}GetEventProperties" % self.TEV

    def test_notification_operations(self, manager, custom, device):
        reference = manager.create().reference
        SubscriptionManager(custom, EVENTS_URL).unsubscribe(reference)
        url, op = sent_operation(device)
        assert url == reference
        assert op.tag == "{%s}Unsubscribe" % self.WSNT
        assert reference not in device.subscriptions
