"""
Graph — dependency graphs of async nodes.

    from storefront import graph as G

    @G.node
    class UserNode:
        @classmethod
        async def __compose__(cls, request: CheckoutRequest, ctx: CheckoutContext) -> "UserNode":
            return cls(await ctx.load_user(request.user_id))

    node = await G.compose(UserNode, request, ctx)

Nodes that do not depend on each other run concurrently.
"""

from nodnod import scalar_node as node

from storefront.graph._run import (
    TypedScope,
    Run,
    run,
    compose,
)
from storefront.graph._compiled import (
    Compiled,
    graph,
)

__all__ = (
    "node",
    "TypedScope",
    "run",
    "Run",
    "compose",
    "graph",
    "Compiled",
)
