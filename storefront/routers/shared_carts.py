# storefront/routers/shared_carts.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from storefront.core.auth import Identity, require_identity
from storefront.core.deps import get_shopping_session
from storefront.core.errors import ShareableCartError
from storefront.database import get_session
from storefront.repositories.shareable_cart_repo import ShareableCartRepository
from storefront.schemas.shared_cart import SharedCartCreate, SharedCartPaid, SharedCartRead
from storefront.services.shareable_cart_service import ShareableCartService
from storefront.services.shopping_session import ShoppingSession

router = APIRouter(prefix="/shared-carts", tags=["Shared carts"])

repo = ShareableCartRepository()


def get_shareable_cart_service(request: Request) -> ShareableCartService:
    return ShareableCartService(repo, request.app.state.settings)


@router.post("", response_model=SharedCartRead, status_code=status.HTTP_201_CREATED)
def share_my_cart(
    payload: SharedCartCreate,
    session: Session = Depends(get_session),
    service: ShareableCartService = Depends(get_shareable_cart_service),
    identity: Identity = Depends(require_identity),
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Freeze the current cart under a shareable token.

    Auth:
      - signed-in shoppers only
    """
    try:
        return service.create_share(
            session,
            owner_id=identity.id,
            cart=shop.cart,
            owner_name=payload.owner_name or identity.name,
            owner_email=identity.email,
        )
    except ShareableCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=list[SharedCartRead])
def list_my_shared_carts(
    status_filter: str | None = None,
    session: Session = Depends(get_session),
    service: ShareableCartService = Depends(get_shareable_cart_service),
    identity: Identity = Depends(require_identity),
):
    return service.list_for_owner(session, identity.id, status_filter)


@router.get("/{token}", response_model=SharedCartRead)
def get_shared_cart(
    token: str,
    session: Session = Depends(get_session),
    service: ShareableCartService = Depends(get_shareable_cart_service),
):
    """
    Open a shared cart by token. Anyone with the link may view it.
    """
    return service.get_by_token(session, token)


@router.post("/{token}/paid", response_model=SharedCartRead)
def mark_shared_cart_paid(
    token: str,
    payload: SharedCartPaid,
    session: Session = Depends(get_session),
    service: ShareableCartService = Depends(get_shareable_cart_service),
):
    """
    Record the order placed from a shared cart.
    """
    try:
        return service.mark_as_paid(session, token, payload.order_id)
    except ShareableCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{token}", response_model=SharedCartRead)
def cancel_shared_cart(
    token: str,
    session: Session = Depends(get_session),
    service: ShareableCartService = Depends(get_shareable_cart_service),
    identity: Identity = Depends(require_identity),
):
    try:
        return service.cancel(session, token, identity.id)
    except ShareableCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
