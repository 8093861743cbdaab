"""
Tests for the SOAP envelope codec.

Pure data transformations, no HTTP involved.
"""

import pytest
from lxml import etree

from onvifcore.elements import tev
from onvifcore.lib import error
from onvifcore.lib.namespace import nsmap
from onvifcore.lib.namespace import SOAP11
from onvifcore.lib.namespace import SOAP12
from onvifcore.lib.namespace import WSSE
from onvifcore.protocol.envelope import EnvelopeCodec
from onvifcore.protocol.security import generate_token
from onvifcore.protocol.types import Fault
from onvifcore.protocol.xml_parsers import parse_pull_messages

TEV = nsmap["tev"]


def envelope(body, namespace=SOAP12):
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<s:Envelope xmlns:s="%s" '
        'xmlns:tev="http://www.onvif.org/ver10/events/wsdl" '
        'xmlns:wsnt="http://docs.oasis-open.org/wsn/b-2" '
        'xmlns:ter="http://www.onvif.org/ver10/error">'
        "<s:Body>%s</s:Body></s:Envelope>" % (namespace, body)
    ).encode("utf-8")


SOAP12_FAULT = envelope(
    "<s:Fault>"
    "<s:Code><s:Value>s:Sender</s:Value>"
    "<s:Subcode><s:Value>ter:InvalidArgVal</s:Value>"
    "<s:Subcode><s:Value>ter:InvalidTopicExpression</s:Value></s:Subcode>"
    "</s:Subcode></s:Code>"
    '<s:Reason><s:Text xml:lang="en">Invalid topic</s:Text></s:Reason>'
    "<s:Detail><s:Text>tns1:Nothing</s:Text></s:Detail>"
    "</s:Fault>"
)

SOAP11_FAULT = envelope(
    "<s:Fault>"
    "<faultcode>s:Client</faultcode>"
    "<faultstring>Sender not authorized</faultstring>"
    "<detail>bad password</detail>"
    "</s:Fault>",
    namespace=SOAP11,
)


class TestEncode:
    def test_operation_in_body(self):
        codec = EnvelopeCodec()
        body = codec.encode("PullMessages", TEV, [tev.Timeout("PT10S"), tev.MessageLimit(5)])
        root = etree.fromstring(body)
        assert root.tag == "{%s}Envelope" % SOAP12
        assert root.find("{%s}Header" % SOAP12) is None
        op = root.find("{%s}Body/{%s}PullMessages" % (SOAP12, TEV))
        assert op is not None
        assert op.findtext("{%s}Timeout" % TEV) == "PT10S"
        assert op.findtext("{%s}MessageLimit" % TEV) == "5"

    def test_security_header(self):
        codec = EnvelopeCodec()
        token = generate_token("admin", "pw")
        root = etree.fromstring(codec.encode("GetEventProperties", TEV, security=token))
        header = root.find("{%s}Header" % SOAP12)
        assert header is not None
        assert (
            header.findtext(
                "{%s}Security/{%s}UsernameToken/{%s}Username" % (WSSE, WSSE, WSSE)
            )
            == "admin"
        )
        assert root.find("{%s}Body/{%s}GetEventProperties" % (SOAP12, TEV)) is not None

    def test_envelope_namespace_is_configurable(self):
        codec = EnvelopeCodec(envelope_namespace=SOAP11)
        root = etree.fromstring(codec.encode("GetEventProperties", TEV))
        assert root.tag == "{%s}Envelope" % SOAP11


class TestDecode:
    def test_parser_gets_body_child(self):
        codec = EnvelopeCodec()
        body = envelope(
            "<tev:PullMessagesResponse>"
            "<tev:CurrentTime>2024-01-01T00:00:00Z</tev:CurrentTime>"
            "<tev:TerminationTime>2024-01-01T00:01:00Z</tev:TerminationTime>"
            "</tev:PullMessagesResponse>"
        )
        result = codec.decode(body, parse_pull_messages)
        assert result.messages == []
        assert result.current_time.minute == 0
        assert result.termination_time.minute == 1

    def test_void(self):
        codec = EnvelopeCodec()
        assert codec.decode(envelope("<wsnt:UnsubscribeResponse/>")) is None
        assert codec.decode(envelope("")) is None

    def test_empty_body_for_non_void(self):
        with pytest.raises(error.DecodeError):
            EnvelopeCodec().decode(envelope(""), parse_pull_messages)

    def test_soap12_fault(self):
        with pytest.raises(error.FaultError) as e:
            EnvelopeCodec().decode(SOAP12_FAULT, parse_pull_messages)
        fault = e.value.fault
        assert fault.code == "s:Sender"
        assert fault.subcode == "ter:InvalidTopicExpression"
        assert fault.reason == "Invalid topic"
        assert fault.detail == "tns1:Nothing"
        assert "Invalid topic" in str(e.value)

    def test_soap11_fault(self):
        with pytest.raises(error.FaultError) as e:
            EnvelopeCodec().decode(SOAP11_FAULT)
        assert e.value.code == "s:Client"
        assert e.value.subcode is None
        assert e.value.fault.reason == "Sender not authorized"
        assert e.value.fault.detail == "bad password"

    @pytest.mark.parametrize(
        "body",
        [
            b"",
            b"not xml at all",
            b"<invalid><xml>not soap</xml></invalid>",
            b'<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"/>',
        ],
    )
    def test_malformed(self, body):
        with pytest.raises(error.DecodeError):
            EnvelopeCodec().decode(body, parse_pull_messages)

    def test_two_body_children(self):
        with pytest.raises(error.DecodeError):
            EnvelopeCodec().decode(envelope("<tev:A/><tev:B/>"), parse_pull_messages)

    def test_parser_errors_become_decode_errors(self):
        def parser(elem):
            raise ValueError("missing field")

        with pytest.raises(error.DecodeError) as e:
            EnvelopeCodec().decode(envelope("<tev:SomethingResponse/>"), parser)
        assert "missing field" in str(e.value)

    def test_entities_are_not_resolved(self):
        body = (
            b'<?xml version="1.0"?>'
            b'<!DOCTYPE x [<!ENTITY e SYSTEM "file:///etc/passwd">]>'
            b'<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope">'
            b"<s:Body><r>&e;</r></s:Body></s:Envelope>"
        )
        elem = EnvelopeCodec().decode(body, lambda x: x)
        assert "root:" not in "".join(elem.itertext())


class TestFault:
    def test_find_fault(self):
        codec = EnvelopeCodec()
        assert codec.find_fault(SOAP12_FAULT).subcode == "ter:InvalidTopicExpression"
        assert codec.find_fault(envelope("<tev:PullMessagesResponse/>")) is None
        assert codec.find_fault(b"<html>Internal Server Error</html>") is None
        assert codec.find_fault(b"") is None

    def test_encode_fault(self):
        codec = EnvelopeCodec()
        fault = Fault(
            code="s:Sender",
            subcode="ter:NotAuthorized",
            reason="Authentication failed",
            detail="bad digest",
        )
        assert codec.find_fault(codec.encode_fault(fault)) == fault
