#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from onvifcore.lib.namespace import ns

## ONVIF event service elements


class Filter(BaseElement):
    tag: ClassVar[str] = ns("tev", "Filter")


class InitialTerminationTime(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "InitialTerminationTime")


class SubscriptionPolicy(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "SubscriptionPolicy")


class Timeout(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "Timeout")


class MessageLimit(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "MessageLimit")


class UtcTime(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "UtcTime")


class Reverse(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "Reverse")


class EventBrokerConfig(BaseElement):
    tag: ClassVar[str] = ns("tev", "EventBrokerConfig")


class Address(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "Address")


class TopicPrefix(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "TopicPrefix")


class UserName(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "UserName")


class Password(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "Password")


class CertificateID(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "CertificateID")


class PublishFilter(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "PublishFilter")


class QoS(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "QoS")


class CertPathValidation(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "CertPathValidation")


class MetadataFilter(ValuedBaseElement):
    tag: ClassVar[str] = ns("tev", "MetadataFilter")
