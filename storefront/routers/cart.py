# storefront/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.deps import get_shopping_session
from storefront.core.errors import CartLineNotFoundError
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartSummary,
    CheckoutSummary,
    LoyaltyRedeem,
    PromoApply,
)
from storefront.services.shopping_session import ShoppingSession

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartSummary)
async def get_my_cart(shop: ShoppingSession = Depends(get_shopping_session)):
    """
    Get the cart of the current device / identity.
    """
    return shop.cart.summary()


@router.post("", response_model=CartSummary)
async def add_to_cart(
    payload: CartItemCreate,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Add a product to the cart (or bump its quantity).

    Returns the updated cart summary.
    """
    shop.cart.add_to_cart(payload.product, payload.quantity)
    return shop.cart.summary()


@router.delete("", response_model=CartSummary)
async def clear_cart(shop: ShoppingSession = Depends(get_shopping_session)):
    """
    Clear the entire cart.
    """
    shop.cart.clear_cart()
    return shop.cart.summary()


@router.post("/loyalty", response_model=CartSummary)
async def redeem_loyalty_points(
    payload: LoyaltyRedeem,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    if shop.identity_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in to redeem loyalty points",
        )
    shop.cart.apply_loyalty_points(payload.points)
    return shop.cart.summary()


@router.delete("/loyalty", response_model=CartSummary)
async def drop_loyalty_points(shop: ShoppingSession = Depends(get_shopping_session)):
    shop.cart.remove_loyalty_points()
    return shop.cart.summary()


@router.post("/promo", response_model=CartSummary)
async def apply_promo(
    payload: PromoApply,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    shop.cart.apply_promo_code(payload.code, payload.amount)
    return shop.cart.summary()


@router.delete("/promo", response_model=CartSummary)
async def drop_promo(shop: ShoppingSession = Depends(get_shopping_session)):
    shop.cart.remove_promo_code()
    return shop.cart.summary()


@router.get("/checkout-summary", response_model=CheckoutSummary)
async def get_checkout_summary(shop: ShoppingSession = Depends(get_shopping_session)):
    """
    Totals with shipping: free from the threshold upwards, flat fee below.
    """
    return shop.cart.checkout_summary()


@router.post("/checkout", response_model=CheckoutSummary)
async def complete_checkout(shop: ShoppingSession = Depends(get_shopping_session)):
    """
    Finish checkout: returns the final figures and empties the cart.
    The response is sent only after the empty cart is persisted.
    """
    try:
        return await shop.cart.complete_checkout()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cart is empty",
        )


@router.patch("/{line_id}", response_model=CartSummary)
async def update_cart_line(
    line_id: str,
    payload: CartItemUpdate,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Set the quantity of a cart line. Quantity 0 removes the line.
    """
    try:
        shop.cart.update_quantity(line_id, payload.quantity)
    except CartLineNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not in cart",
        )
    return shop.cart.summary()


@router.delete("/{line_id}", response_model=CartSummary)
async def remove_cart_line(
    line_id: str,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Remove a line from the cart. Removing a missing line is a no-op.
    """
    shop.cart.remove_line(line_id)
    return shop.cart.summary()
