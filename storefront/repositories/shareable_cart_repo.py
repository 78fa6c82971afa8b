# storefront/repositories/shareable_cart_repo.py
from sqlmodel import Session, select

from storefront.models.shareable_cart import ShareableCart


class ShareableCartRepository:

    def get_by_token(self, session: Session, token: str) -> ShareableCart | None:
        return session.get(ShareableCart, token)

    def list_for_owner(self, session: Session, owner_id: str) -> list[ShareableCart]:
        stmt = select(ShareableCart).where(ShareableCart.owner_id == owner_id)
        stmt = stmt.order_by(ShareableCart.created_at.desc())
        return session.exec(stmt).all()

    # CRUD
    def create(self, session: Session, cart: ShareableCart) -> ShareableCart:
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart

    def update(self, session: Session, cart: ShareableCart) -> ShareableCart:
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart
