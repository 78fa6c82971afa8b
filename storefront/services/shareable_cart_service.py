# storefront/services/shareable_cart_service.py
import logging
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from storefront.core.config import Settings, get_settings
from storefront.core.errors import ShareableCartError
from storefront.models.shareable_cart import ShareableCart
from storefront.repositories.shareable_cart_repo import ShareableCartRepository
from storefront.schemas.cart import CartLine, CartTotals
from storefront.schemas.shared_cart import SharedCartRead
from storefront.services.cart_service import CartService, shipping_for

logger = logging.getLogger(__name__)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class ShareableCartService:
    """
    Business logic for shareable carts.

    Responsibilities:
      - freeze the owner's current cart under a random token
      - expire links after SHARE_CART_TTL_HOURS
      - enforce the lifecycle: active -> paid | cancelled | expired
    """

    def __init__(
        self,
        repo: ShareableCartRepository,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.settings = settings or get_settings()

    # ---- internal helpers ----

    def _get_or_404(self, session: Session, token: str) -> ShareableCart:
        cart = self.repo.get_by_token(session, token)
        if not cart:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Shared cart not found",
            )
        return self._expire_if_due(session, cart)

    def _expire_if_due(self, session: Session, cart: ShareableCart) -> ShareableCart:
        if cart.status == "active" and _as_utc(cart.expires_at) <= datetime.now(timezone.utc):
            cart.status = "expired"
            cart = self.repo.update(session, cart)
            logger.info("Shared cart %s expired", cart.share_token)
        return cart

    def _require_active(self, cart: ShareableCart) -> None:
        if cart.status != "active":
            raise ShareableCartError(
                f"Shared cart is {cart.status} and can no longer be changed"
            )

    def to_read(self, cart: ShareableCart) -> SharedCartRead:
        totals = CartTotals.model_validate(cart.cart_data.get("totals", {}))
        shipping = shipping_for(totals.total, self.settings)
        return SharedCartRead(
            share_token=cart.share_token,
            owner_id=cart.owner_id,
            owner_name=cart.owner_name,
            owner_email=cart.owner_email,
            status=cart.status,
            order_id=cart.order_id,
            items=[CartLine.model_validate(it) for it in cart.cart_data.get("items", [])],
            totals=totals,
            shipping_amount=shipping,
            final_total=round(totals.total + shipping, 2),
            created_at=cart.created_at,
            expires_at=cart.expires_at,
            paid_at=cart.paid_at,
        )

    # ---- public operations ----

    def create_share(
        self,
        session: Session,
        owner_id: str,
        cart: CartService,
        owner_name: str | None = None,
        owner_email: str | None = None,
    ) -> SharedCartRead:
        """
        Snapshot the owner's cart into a new shareable link.

        Raises:
            ShareableCartError: if the cart is empty.
        """
        if not len(cart):
            raise ShareableCartError("Cannot share an empty cart")

        now = datetime.now(timezone.utc)
        shared = ShareableCart(
            owner_id=owner_id,
            owner_name=owner_name,
            owner_email=owner_email,
            cart_data={
                "items": [line.model_dump(mode="json") for line in cart.lines],
                "totals": cart.totals().model_dump(mode="json"),
            },
            created_at=now,
            expires_at=now + timedelta(hours=self.settings.SHARE_CART_TTL_HOURS),
        )
        shared = self.repo.create(session, shared)
        logger.info("Owner %s shared cart %s", owner_id, shared.share_token)
        return self.to_read(shared)

    def get_by_token(self, session: Session, token: str) -> SharedCartRead:
        return self.to_read(self._get_or_404(session, token))

    def mark_as_paid(self, session: Session, token: str, order_id: str) -> SharedCartRead:
        """
        Record that an order was placed from the shared cart.

        Raises:
            HTTPException(404): unknown token.
            ShareableCartError: cart is not active.
        """
        cart = self._get_or_404(session, token)
        self._require_active(cart)

        cart.status = "paid"
        cart.order_id = order_id
        cart.paid_at = datetime.now(timezone.utc)
        cart = self.repo.update(session, cart)
        logger.info("Shared cart %s paid with order %s", token, order_id)
        return self.to_read(cart)

    def cancel(self, session: Session, token: str, owner_id: str) -> SharedCartRead:
        """
        Withdraw a shared link. Only the owner may cancel.

        Raises:
            HTTPException(404): unknown token.
            HTTPException(403): caller is not the owner.
            ShareableCartError: cart is not active.
        """
        cart = self._get_or_404(session, token)
        if cart.owner_id != owner_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the owner can cancel a shared cart",
            )
        self._require_active(cart)

        cart.status = "cancelled"
        cart = self.repo.update(session, cart)
        return self.to_read(cart)

    def list_for_owner(
        self,
        session: Session,
        owner_id: str,
        status_filter: str | None = None,
    ) -> list[SharedCartRead]:
        # expiry has to run before the status filter
        carts = [
            self._expire_if_due(session, c)
            for c in self.repo.list_for_owner(session, owner_id)
        ]
        if status_filter is not None:
            carts = [c for c in carts if c.status == status_filter]
        return [self.to_read(c) for c in carts]
