"""
Input — customer and cart.
"""

from storefront import graph as G
from storefront.domain import CartLine, CheckoutErrors, CheckoutRequest, User
from storefront.nodes._context import CheckoutContext
from storefront.repo import UserRepo


@G.node
class UserNode:
    """The customer must exist before anything else is read."""

    def __init__(self, data: User) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: CheckoutRequest, ctx: CheckoutContext) -> "UserNode":
        async with ctx.session_factory() as session:
            user = await UserRepo(session).get(request.user_id)
        if user is None:
            raise CheckoutErrors.user_not_found()
        return cls(user)


@G.node
class CartNode:
    def __init__(self, lines: tuple[CartLine, ...]) -> None:
        self.lines = lines

    @classmethod
    async def __compose__(cls, request: CheckoutRequest, user: UserNode) -> "CartNode":
        if not request.items:
            raise CheckoutErrors.empty_cart()
        return cls(request.items)


__all__ = ("UserNode", "CartNode")
