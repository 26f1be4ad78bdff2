"""
FastAPI compiler for storefront.wire.

    from storefront.wire.contrib import fastapi
    api = fastapi.from_application(app)

Every response is a JSON body whose status code comes from the response
model, so failures keep their structured payload.
"""

from collections.abc import Callable, Coroutine
from typing import Any

import fastapi
from fastapi.responses import JSONResponse
from kungfu import Result

from storefront.wire._app import Application, Endpoint, Handler
from storefront.wire.codecs.raw import RawBodyCodec
from storefront.wire.codecs.rrc import RequestResponseCodec
from storefront.wire.triggers.http import HTTPRouteTrigger, Path


type RouteHandler = Callable[..., Coroutine[Any, Any, JSONResponse]]
type Route = tuple[str, Path, RouteHandler, type[Any]]  # (method, path, handler, response model)


def _json_handler(
    req_cls: type[Any],
    resp_cls: type[Any],
    handler: Handler[Any, Any, Any],
) -> RouteHandler:
    async def _route_handler(req: Any) -> JSONResponse:
        result: Result[Any, Any] = await handler(req.to_domain())
        resp = resp_cls.from_domain(result)
        return JSONResponse(resp.to_body(), status_code=resp.status_code)

    _route_handler.__annotations__ = {"req": req_cls, "return": JSONResponse}
    return _route_handler


def _raw_handler(
    req_cls: type[Any],
    resp_cls: type[Any],
    handler: Handler[Any, Any, Any],
    headers: frozenset[str],
) -> RouteHandler:
    async def _route_handler(request: fastapi.Request) -> JSONResponse:
        body = await request.body()
        picked = {name: request.headers.get(name, "") for name in headers}
        result: Result[Any, Any] = await handler(req_cls.from_raw(body, picked))
        resp = resp_cls.from_domain(result)
        return JSONResponse(resp.to_body(), status_code=resp.status_code)

    return _route_handler


def compile_to_fastapi_route(endp: Endpoint) -> list[Route]:
    routes: list[Route] = []

    for trigger, codec in endp.exposures:
        if not isinstance(trigger, HTTPRouteTrigger):
            continue

        match codec:
            case RequestResponseCodec(request=req_cls, response=resp_cls):
                route = _json_handler(req_cls, resp_cls, endp.handler)
            case RawBodyCodec(request=req_cls, response=resp_cls):
                route = _raw_handler(
                    req_cls,
                    resp_cls,
                    endp.handler,
                    frozenset(h.lower() for h in trigger.headers),
                )
            case _:
                continue

        routes.append((trigger.method.upper(), trigger.path, route, resp_cls))

    return routes


def add_endpoint_to_app(app: fastapi.FastAPI, endp: Endpoint) -> None:
    for method, path, handler, response_model in compile_to_fastapi_route(endp):
        app.add_api_route(
            path,
            handler,
            methods=[method],
            response_model=response_model,
            response_class=JSONResponse,
        )


def from_application(app: Application, **options: Any) -> fastapi.FastAPI:
    f_app = fastapi.FastAPI(**options)

    for endp in app.endpoints:
        add_endpoint_to_app(f_app, endp)

    return f_app


__all__ = (
    "add_endpoint_to_app",
    "from_application",
    "compile_to_fastapi_route",
)
