"""
Codecs — convert transport payloads to handler input and results back.

    # class Request(BaseModel): def to_domain(self) -> VerifyCod
    # class Response(BaseModel): from_domain(result), status_code, to_body()
    codec = RequestResponseCodec(Request, Response)
"""

from storefront.wire.codecs.rrc import (
    RequestResponseCodec,
    ToDomain,
    FromDomain,
)
from storefront.wire.codecs.raw import RawBodyCodec, FromRaw

__all__ = (
    "RequestResponseCodec",
    "ToDomain",
    "FromDomain",
    "RawBodyCodec",
    "FromRaw",
)
