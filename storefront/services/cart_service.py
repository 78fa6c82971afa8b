# storefront/services/cart_service.py
import logging
from typing import Callable, Iterable

from storefront.core.config import Settings, get_settings
from storefront.core.errors import CartLineNotFoundError
from storefront.schemas.cart import (
    CartLine,
    CartLineRead,
    CartSummary,
    CartTotals,
    CheckoutSummary,
)
from storefront.schemas.product import ProductRef
from storefront.services.persistence import PersistenceQueue, PersistentStore

logger = logging.getLogger(__name__)

CartListener = Callable[["CartService"], None]


class CartService:
    """
    In-memory cart for one browsing session.

    Responsibilities:
      - keep at most one line per product (adding again bumps quantity)
      - snapshot price / display fields from the product at add-time
      - hold session-level discounts (loyalty points, promo code)
      - recompute totals from the lines on every read
      - persist every mutation optimistically via PersistenceQueue

    Quantity upper bounds (max per order) belong to the caller.
    """

    def __init__(
        self,
        store: PersistentStore[CartLine],
        settings: Settings | None = None,
    ):
        self.store = store
        self.namespace = store.namespace
        self.settings = settings or get_settings()
        self.persistence = PersistenceQueue(store)

        self._lines: list[CartLine] = []
        self._loyalty_points_used = 0
        self._loyalty_discount = 0.0
        self._promo_code: str | None = None
        self._promo_discount = 0.0
        self._listeners: list[CartListener] = []

    # ---- internal helpers ----

    def _find_line(self, line_id: str) -> CartLine | None:
        return next((ln for ln in self._lines if ln.id == line_id), None)

    def _find_product_line(self, product_id: str) -> CartLine | None:
        return next((ln for ln in self._lines if ln.product_id == product_id), None)

    def _commit(self) -> None:
        """
        Persist the current lines and notify subscribers.
        """
        try:
            self.persistence.submit(self._lines)
        finally:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Cart listener failed for %s", self.namespace)

    def _merge_line(self, line: CartLine) -> None:
        existing = self._find_product_line(line.product_id)
        if existing:
            existing.quantity += line.quantity
        else:
            self._lines.append(line)

    # ---- state ----

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def load(self) -> None:
        """
        Replace in-memory lines with the persisted copy.
        """
        self._lines = self.store.load()
        logger.debug("Loaded %d cart lines for %s", len(self._lines), self.namespace)
        self._notify()

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Register a callback run after every mutation. Returns an
        unsubscribe function.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def flush(self) -> None:
        await self.persistence.flush()

    # ---- public operations ----

    def add_to_cart(self, product: ProductRef, quantity: int = 1) -> CartLine:
        """
        Add a product to the cart.

        Rules:
          - an existing line for product.id gets its quantity increased
          - otherwise a new line snapshots name/price/sku/image from product

        Raises:
            ValueError: if quantity < 1.
            PersistenceSerializationError: if the cart cannot be serialized.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        line = self._find_product_line(product.id)
        if line:
            line.quantity += quantity
        else:
            line = CartLine(
                product_id=product.id,
                name=product.name,
                price=product.price,
                original_price=product.original_price,
                quantity=quantity,
                sku=product.sku,
                image_url=product.image_url,
            )
            self._lines.append(line)

        self._commit()
        return line

    def update_quantity(self, line_id: str, quantity: int) -> CartLine | None:
        """
        Set the quantity of a line; quantity <= 0 removes it.

        Returns the updated line, or None when it was removed.

        Raises:
            CartLineNotFoundError: if line_id is not in the cart.
        """
        line = self._find_line(line_id)
        if line is None:
            raise CartLineNotFoundError(line_id)

        if quantity <= 0:
            self._lines.remove(line)
            self._commit()
            return None

        line.quantity = quantity
        self._commit()
        return line

    def remove_line(self, line_id: str) -> None:
        """Remove a line; no-op if it is not in the cart."""
        line = self._find_line(line_id)
        if line is None:
            return
        self._lines.remove(line)
        self._commit()

    def clear_cart(self) -> None:
        """Empty the cart and drop any applied discounts."""
        self._lines = []
        self._loyalty_points_used = 0
        self._loyalty_discount = 0.0
        self._promo_code = None
        self._promo_discount = 0.0
        self._commit()

    def merge_lines(self, lines: Iterable[CartLine]) -> None:
        """
        Fold another cart's lines into this one, summing quantities
        per product.
        """
        for line in lines:
            self._merge_line(line.model_copy())
        self._commit()

    # ---- discounts ----

    def apply_loyalty_points(self, points: int) -> CartTotals:
        """
        Redeem loyalty points against the cart.

        Checking the customer's balance is the caller's job; the discount
        is capped at the subtotal when totals are computed.
        """
        if points < 1:
            raise ValueError("points must be at least 1")
        self._loyalty_points_used = points
        self._loyalty_discount = round(points * self.settings.LOYALTY_POINT_VALUE, 2)
        self._notify()
        return self.totals()

    def remove_loyalty_points(self) -> CartTotals:
        self._loyalty_points_used = 0
        self._loyalty_discount = 0.0
        self._notify()
        return self.totals()

    def apply_promo_code(self, code: str, amount: float) -> CartTotals:
        if amount <= 0:
            raise ValueError("promo amount must be positive")
        self._promo_code = code
        self._promo_discount = round(amount, 2)
        self._notify()
        return self.totals()

    def remove_promo_code(self) -> CartTotals:
        self._promo_code = None
        self._promo_discount = 0.0
        self._notify()
        return self.totals()

    # ---- derived figures ----

    def totals(self) -> CartTotals:
        """
        Recompute every derived figure from the lines.

        total = subtotal - discount_amount, with the combined discount
        capped at the subtotal.
        """
        item_count = 0
        subtotal = 0.0
        for line in self._lines:
            item_count += line.quantity
            subtotal += line.price * line.quantity
        subtotal = round(subtotal, 2)

        discount_amount = round(
            min(self._loyalty_discount + self._promo_discount, subtotal), 2
        )

        return CartTotals(
            item_count=item_count,
            subtotal=subtotal,
            loyalty_points_used=self._loyalty_points_used,
            loyalty_discount=self._loyalty_discount,
            promo_code=self._promo_code,
            promo_discount=self._promo_discount,
            discount_amount=discount_amount,
            total=round(subtotal - discount_amount, 2),
        )

    def summary(self) -> CartSummary:
        return CartSummary(
            namespace=self.namespace,
            items=[
                CartLineRead(
                    **line.model_dump(),
                    line_total=round(line.price * line.quantity, 2),
                )
                for line in self._lines
            ],
            totals=self.totals(),
        )

    def checkout_summary(self) -> CheckoutSummary:
        totals = self.totals()
        shipping = shipping_for(totals.total, self.settings)
        return CheckoutSummary(
            totals=totals,
            shipping_amount=shipping,
            final_total=round(totals.total + shipping, 2),
            max_quantity_per_line=self.settings.MAX_QUANTITY_PER_ORDER,
        )

    async def complete_checkout(self) -> CheckoutSummary:
        """
        Capture the final figures, empty the cart and wait until the
        empty cart is durable.

        Raises:
            ValueError: if the cart is empty.
        """
        if not self._lines:
            raise ValueError("Cart is empty")

        summary = self.checkout_summary()
        self.clear_cart()
        await self.flush()
        logger.info(
            "Checkout completed for %s: %d items, final total %.2f",
            self.namespace,
            summary.totals.item_count,
            summary.final_total,
        )
        return summary


def shipping_for(total: float, settings: Settings) -> float:
    """
    Flat shipping fee, free at or above the threshold.
    """
    if total >= settings.FREE_SHIPPING_THRESHOLD:
        return 0.0
    return settings.SHIPPING_FEE
