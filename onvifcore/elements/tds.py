#!/usr/bin/env python
from typing import ClassVar

from .base import ValuedBaseElement
from onvifcore.lib.namespace import ns


class Category(ValuedBaseElement):
    tag: ClassVar[str] = ns("tds", "Category")
