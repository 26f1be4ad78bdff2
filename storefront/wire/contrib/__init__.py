"""
Contrib — framework integrations.

    from storefront.wire.contrib import fastapi
    api = fastapi.from_application(app)
"""

from storefront.wire.contrib import fastapi

__all__ = ("fastapi",)
