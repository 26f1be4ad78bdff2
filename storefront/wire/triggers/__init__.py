"""
Triggers — describe how endpoints are exposed.

    from storefront.wire.triggers.http import HTTPRouteTrigger

    http = HTTPRouteTrigger("POST", "/checkout")
"""

from storefront.wire.triggers import http


__all__ = ("http",)
