"""
SOAP envelope encoding and decoding.

encode() wraps an operation element (and optionally a security header)
in an envelope.  decode() finds the single child of the Body and either
hands it to a parser or, if it is a Fault, raises FaultError.
"""

import logging
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Optional
from typing import TypeVar

from lxml import etree
from lxml.etree import _Element

from onvifcore.elements.base import BaseElement
from onvifcore.elements.base import OperationElement
from onvifcore.lib import error
from onvifcore.lib.namespace import child_text
from onvifcore.lib.namespace import find_child
from onvifcore.lib.namespace import localname
from onvifcore.lib.namespace import nsmap as default_nsmap
from onvifcore.lib.namespace import SOAP11
from onvifcore.lib.namespace import SOAP12
from onvifcore.protocol.security import security_header
from onvifcore.protocol.types import Fault
from onvifcore.protocol.types import SecurityToken

log = logging.getLogger(__name__)

T = TypeVar("T")

ENVELOPE_NAMESPACES = (SOAP12, SOAP11)


class EnvelopeCodec:
    """
    Serializes requests into SOAP envelopes and parses responses.

    Namespaces are configuration, not globals: the envelope namespace
    defaults to SOAP 1.2 and nsmap to the usual ONVIF prefixes.  When
    decoding, both SOAP 1.1 and SOAP 1.2 envelopes are understood.
    """

    def __init__(
        self,
        envelope_namespace: str = SOAP12,
        nsmap: Optional[Dict[str, str]] = None,
        huge_tree: bool = False,
    ) -> None:
        self.envelope_namespace = envelope_namespace
        self.nsmap = dict(nsmap or default_nsmap)
        ## the envelope prefix must point to the envelope namespace
        self.nsmap["s"] = envelope_namespace
        self.huge_tree = huge_tree

    def _envelope(self) -> _Element:
        return etree.Element("{%s}Envelope" % self.envelope_namespace, nsmap=self.nsmap)

    def encode(
        self,
        operation: str,
        namespace: str,
        payload: Iterable = (),
        security: Optional[SecurityToken] = None,
    ) -> bytes:
        """
        Builds the request envelope.

        Args:
            operation: Operation name, becomes the local name of the body element
            namespace: Namespace of the operation element
            payload: Child elements (BaseElement or lxml elements) of the operation element
            security: Token for the WS-Security header; no header if None
        """
        element = OperationElement(operation, namespace)
        if payload is not None:
            element += payload
        return self.encode_element(element, security=security)

    def encode_element(
        self, element: BaseElement, security: Optional[SecurityToken] = None
    ) -> bytes:
        envelope = self._envelope()
        if security is not None:
            header = etree.SubElement(
                envelope, "{%s}Header" % self.envelope_namespace
            )
            header.append(security_header(security).xmlelement(namespaces=self.nsmap))
        body = etree.SubElement(envelope, "{%s}Body" % self.envelope_namespace)
        if element is not None:
            if isinstance(element, _Element):
                body.append(element)
            else:
                body.append(element.xmlelement(namespaces=self.nsmap))
        return etree.tostring(envelope, encoding="utf-8", xml_declaration=True)

    def encode_fault(self, fault: Fault) -> bytes:
        """Serializes a SOAP 1.2 fault, used by the reference handler"""
        s = self.envelope_namespace
        envelope = self._envelope()
        body = etree.SubElement(envelope, "{%s}Body" % s)
        elem = etree.SubElement(body, "{%s}Fault" % s)
        code = etree.SubElement(elem, "{%s}Code" % s)
        etree.SubElement(code, "{%s}Value" % s).text = fault.code
        if fault.subcode:
            subcode = etree.SubElement(code, "{%s}Subcode" % s)
            etree.SubElement(subcode, "{%s}Value" % s).text = fault.subcode
        reason = etree.SubElement(elem, "{%s}Reason" % s)
        text = etree.SubElement(reason, "{%s}Text" % s)
        text.set("{http://www.w3.org/XML/1998/namespace}lang", "en")
        text.text = fault.reason
        if fault.detail:
            etree.SubElement(elem, "{%s}Detail" % s).text = fault.detail
        return etree.tostring(envelope, encoding="utf-8", xml_declaration=True)

    def parse(self, body: bytes) -> _Element:
        """Parses raw bytes and returns the Envelope element"""
        if not body:
            raise error.DecodeError(reason="received empty response body")
        try:
            tree = etree.fromstring(
                body,
                parser=etree.XMLParser(
                    remove_blank_text=True,
                    huge_tree=self.huge_tree,
                    resolve_entities=False,
                ),
            )
        except etree.XMLSyntaxError as e:
            raise error.DecodeError(reason="response is not valid XML: %s" % e) from e
        if localname(tree.tag) != "Envelope" or etree.QName(tree).namespace not in (
            ENVELOPE_NAMESPACES
        ):
            raise error.DecodeError(
                reason="expected a SOAP Envelope, got %s" % tree.tag
            )
        return tree

    def body_element(self, envelope: _Element) -> Optional[_Element]:
        """
        Returns the single child of the Body, or None if the Body is empty.
        """
        namespace = etree.QName(envelope).namespace
        body = envelope.find("{%s}Body" % namespace)
        if body is None:
            raise error.DecodeError(reason="SOAP Envelope without Body")
        children = [x for x in body if isinstance(x.tag, str)]
        if not children:
            return None
        if len(children) > 1:
            raise error.DecodeError(
                reason="SOAP Body with %i children, expected one" % len(children)
            )
        return children[0]

    def header_element(self, envelope: _Element) -> Optional[_Element]:
        namespace = etree.QName(envelope).namespace
        return envelope.find("{%s}Header" % namespace)

    def find_fault(self, body: bytes) -> Optional[Fault]:
        """
        Returns the Fault if body is an envelope holding one, otherwise
        None.  Never raises.
        """
        try:
            child = self.body_element(self.parse(body))
        except error.DecodeError:
            return None
        if child is None or localname(child.tag) != "Fault":
            return None
        return parse_fault(child)

    def decode(
        self, body: bytes, parser: Optional[Callable[[_Element], T]] = None
    ) -> Optional[T]:
        """
        Decodes a response.

        Args:
            body: Raw response bytes
            parser: Callable turning the body child into a typed result.
                None declares the operation void.

        Returns:
            Whatever parser returns; None for void operations

        Raises:
            FaultError: The body holds a SOAP Fault
            DecodeError: The response has an unexpected shape
        """
        child = self.body_element(self.parse(body))
        if child is not None and localname(child.tag) == "Fault":
            raise error.FaultError(parse_fault(child))
        if parser is None:
            return None
        if child is None:
            raise error.DecodeError(reason="empty SOAP Body for a non-void operation")
        try:
            return parser(child)
        except (ValueError, TypeError, AttributeError) as e:
            raise error.DecodeError(
                reason="cannot decode %s: %s" % (localname(child.tag), e)
            ) from e


def parse_fault(elem: _Element) -> Fault:
    """
    Parses a SOAP 1.2 Fault (Code/Value, Subcode/Value, Reason/Text,
    Detail) or a SOAP 1.1 Fault (faultcode, faultstring, detail).
    """
    if find_child(elem, "faultcode") is not None or find_child(elem, "faultstring") is not None:
        return Fault(
            code=child_text(elem, "faultcode"),
            reason=child_text(elem, "faultstring"),
            detail=_detail_text(find_child(elem, "detail")),
        )

    code_elem = find_child(elem, "Code")
    code = child_text(code_elem, "Value")
    ## subcodes may be nested, the innermost one is the most specific
    subcode = None
    sub = find_child(code_elem, "Subcode")
    while sub is not None:
        subcode = child_text(sub, "Value") or subcode
        sub = find_child(sub, "Subcode")
    reason = child_text(find_child(elem, "Reason"), "Text")
    return Fault(
        code=code,
        subcode=subcode,
        reason=reason,
        detail=_detail_text(find_child(elem, "Detail")),
    )


def _detail_text(detail: Optional[_Element]) -> Optional[str]:
    if detail is None:
        return None
    text = " ".join(x.strip() for x in detail.itertext() if x.strip())
    return text or None
