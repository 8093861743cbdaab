#!/usr/bin/env python
from typing import Dict
from typing import List
from typing import Optional

from lxml.etree import _Element

SOAP12 = "http://www.w3.org/2003/05/soap-envelope"
SOAP11 = "http://schemas.xmlsoap.org/soap/envelope/"
WSSE = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
WSU = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
PASSWORD_DIGEST = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0#PasswordDigest"
BASE64_BINARY = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-soap-message-security-1.0#Base64Binary"

## Default prefixes put on the wire.  EnvelopeCodec takes its own
## mapping, this is only the default.
nsmap: Dict[str, str] = {
    "s": SOAP12,
    "wsse": WSSE,
    "wsu": WSU,
    "wsa": "http://www.w3.org/2005/08/addressing",
    "wsnt": "http://docs.oasis-open.org/wsn/b-2",
    "tt": "http://www.onvif.org/ver10/schema",
    "tds": "http://www.onvif.org/ver10/device/wsdl",
    "tev": "http://www.onvif.org/ver10/events/wsdl",
    "ter": "http://www.onvif.org/ver10/error",
}


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name


def localname(tag: str) -> str:
    """Strips the {namespace} part of an lxml tag"""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


## Peers differ a lot in namespace usage, so lookups in answers go by
## local name only.
def find_children(elem: Optional[_Element], name: str) -> List[_Element]:
    if elem is None:
        return []
    return [c for c in elem if localname(c.tag) == name]


def find_child(elem: Optional[_Element], name: str) -> Optional[_Element]:
    for c in find_children(elem, name):
        return c
    return None


def child_text(elem: Optional[_Element], name: Optional[str] = None) -> str:
    """
    Stripped text of the first child called name, or of elem itself if
    no name is given.  Missing elements and empty text give "".
    """
    if name is not None:
        elem = find_child(elem, name)
    if elem is None or elem.text is None:
        return ""
    return elem.text.strip()
