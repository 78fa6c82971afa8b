# storefront/routers/favourites.py
from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.deps import get_shopping_session
from storefront.schemas.favourite import (
    FavouriteMutationResult,
    FavouriteStatus,
    FavouritesSummary,
    StockLevel,
    StockRefreshResult,
)
from storefront.schemas.product import ProductRef
from storefront.services.shopping_session import ShoppingSession

router = APIRouter(prefix="/favourites", tags=["Favourites"])


@router.get("", response_model=FavouritesSummary)
async def get_my_favourites(shop: ShoppingSession = Depends(get_shopping_session)):
    return shop.favourites.summary()


@router.post("", response_model=FavouriteMutationResult)
async def add_favourite(
    product: ProductRef,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Save a product. Saving it twice returns an info notice and
    leaves the list unchanged.
    """
    notice = await shop.favourites.add_to_favourites(product)
    return FavouriteMutationResult(notice=notice, favourites=shop.favourites.summary())


@router.delete("", response_model=FavouriteMutationResult)
async def clear_favourites(shop: ShoppingSession = Depends(get_shopping_session)):
    notice = shop.favourites.clear_favourites()
    return FavouriteMutationResult(notice=notice, favourites=shop.favourites.summary())


@router.post("/refresh", response_model=StockRefreshResult)
async def refresh_stock(shop: ShoppingSession = Depends(get_shopping_session)):
    """
    Re-check stock for every saved product right now.
    """
    changed = await shop.favourites.refresh_stock()
    return StockRefreshResult(changed=changed, favourites=shop.favourites.summary())


@router.get("/{product_id}/status", response_model=FavouriteStatus)
async def favourite_status(
    product_id: str,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Membership test used to toggle the heart icon.
    """
    item = shop.favourites.get(product_id)
    return FavouriteStatus(
        product_id=product_id,
        is_favourite=item is not None,
        stock_status=item.stock_status if item else None,
    )


@router.patch("/{product_id}/stock", response_model=FavouritesSummary)
async def update_stock(
    product_id: str,
    payload: StockLevel,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    """
    Push fresh stock figures for one saved product.
    """
    if not shop.favourites.is_favourite(product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not in favourites",
        )
    shop.favourites.update_stock_status(product_id, payload)
    return shop.favourites.summary()


@router.delete("/{product_id}", response_model=FavouriteMutationResult)
async def remove_favourite(
    product_id: str,
    shop: ShoppingSession = Depends(get_shopping_session),
):
    notice = shop.favourites.remove_from_favourites(product_id)
    return FavouriteMutationResult(notice=notice, favourites=shop.favourites.summary())
