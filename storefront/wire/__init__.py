"""
Wire — expose async handlers via triggers and codecs.

    from storefront.wire import endpoint, Application
    from storefront.wire.triggers.http import HTTPRouteTrigger
    from storefront.wire.codecs.rrc import RequestResponseCodec

    endp = endpoint(handle_verify_cod).expose(
        HTTPRouteTrigger("POST", "/orders/verify-cod"),
        RequestResponseCodec(VerifyCodBody, Envelope),
    )
    app = Application().mount(endp)
"""

from storefront.wire._app import (
    Handler,
    Trigger,
    Codec,
    Exposure,
    Endpoint,
    endpoint,
    Application,
    application,
)
from storefront.wire.codecs.rrc import RequestResponseCodec
from storefront.wire.codecs.raw import RawBodyCodec
from storefront.wire.triggers.http import (
    HTTPRouteTrigger,
    Method,
    Path,
    Header,
    Headers,
)

from storefront.wire import codecs, triggers, contrib

__all__ = (
    "Endpoint",
    "Handler",
    "endpoint",
    "Application",
    "application",
    "Trigger",
    "Codec",
    "Exposure",
    "RequestResponseCodec",
    "RawBodyCodec",
    "HTTPRouteTrigger",
    "Method",
    "Path",
    "Header",
    "Headers",
    "codecs",
    "triggers",
    "contrib",
)
