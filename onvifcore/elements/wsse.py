#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from onvifcore.lib.namespace import BASE64_BINARY
from onvifcore.lib.namespace import ns
from onvifcore.lib.namespace import PASSWORD_DIGEST


class Security(BaseElement):
    tag: ClassVar[str] = ns("wsse", "Security")


class UsernameToken(BaseElement):
    tag: ClassVar[str] = ns("wsse", "UsernameToken")


class Username(ValuedBaseElement):
    tag: ClassVar[str] = ns("wsse", "Username")


class Password(BaseElement):
    tag: ClassVar[str] = ns("wsse", "Password")

    def __init__(self, digest: str) -> None:
        super(Password, self).__init__(value=digest, attributes={"Type": PASSWORD_DIGEST})


class Nonce(BaseElement):
    tag: ClassVar[str] = ns("wsse", "Nonce")

    def __init__(self, nonce: str) -> None:
        super(Nonce, self).__init__(value=nonce, attributes={"EncodingType": BASE64_BINARY})


class Created(ValuedBaseElement):
    tag: ClassVar[str] = ns("wsu", "Created")
