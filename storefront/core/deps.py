# storefront/core/deps.py
from fastapi import Depends, Request

from storefront.core.auth import Identity, get_current_identity, get_device_id
from storefront.services.shopping_session import SessionRegistry, ShoppingSession


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_shopping_session(
    device_id: str = Depends(get_device_id),
    identity: Identity | None = Depends(get_current_identity),
    registry: SessionRegistry = Depends(get_registry),
) -> ShoppingSession:
    """
    The device's cart + favourites, bound to the caller's namespace.

    A changed identity (sign-in / sign-out) switches the namespace
    before the request is handled.
    """
    return await registry.acquire(device_id, identity.id if identity else None)
