#!/usr/bin/env python
import sys
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from onvifcore.lib.namespace import nsmap

if sys.version_info < (3, 9):
    from typing import Iterable
else:
    from collections.abc import Iterable

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    children: Optional[List[Self]] = None
    tag: ClassVar[Optional[str]] = None
    value: Optional[str] = None
    attributes: Optional[dict] = None

    def __init__(
        self,
        value: Union[str, bytes, int, bool, None] = None,
        attributes: Optional[Dict[str, str]] = None,
    ) -> None:
        self.children = []
        self.attributes = dict(attributes or {})
        self.value = None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        elif isinstance(value, bool):
            value = "true" if value else "false"
        if value is not None:
            self.value = str(value)

    def __add__(
        self, other: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        return self.append(other)

    def xmlelement(self, namespaces: Optional[Dict[str, str]] = None) -> _Element:
        if self.tag is None:
            raise ValueError("Unexpected value None for self.tag")

        root = etree.Element(self.tag, nsmap=namespaces or nsmap)
        if self.value is not None:
            root.text = self.value

        for k in self.attributes:
            root.set(k, self.attributes[k])

        self.xmlchildren(root)
        return root

    def xmlchildren(self, root: _Element) -> None:
        for c in self.children:
            if isinstance(c, _Element):
                root.append(c)
            else:
                root.append(c.xmlelement(namespaces=root.nsmap))

    def append(self, element: Union[Self, Iterable[Self]]) -> Self:
        if isinstance(element, (BaseElement, _Element)):
            self.children.append(element)
        elif isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)

        return self


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, int, bool, None] = None) -> None:
        super(ValuedBaseElement, self).__init__(value=value)


class OperationElement(BaseElement):
    """
    The body element of an RPC request.  Operation name and namespace
    are given at runtime, which is what makes one generic call()
    sufficient for all operations.
    """

    def __init__(self, operation: str, namespace: Optional[str]) -> None:
        super(OperationElement, self).__init__()
        if namespace:
            self.tag = "{%s}%s" % (namespace, operation)
        else:
            self.tag = operation
