#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from onvifcore.lib.namespace import ns

## WS-BaseNotification elements


class TopicExpression(BaseElement):
    tag: ClassVar[str] = ns("wsnt", "TopicExpression")

    def __init__(self, expression: str) -> None:
        super(TopicExpression, self).__init__(
            value=expression,
            attributes={
                "Dialect": "http://www.onvif.org/ver10/tev/topicExpression/ConcreteSet"
            },
        )


class TerminationTime(ValuedBaseElement):
    tag: ClassVar[str] = ns("wsnt", "TerminationTime")
