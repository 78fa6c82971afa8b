import asyncio

import pytest

from storefront.schemas.favourite import StockLevel, classify_stock
from storefront.services.favourites_service import FavouritesService
from storefront.services.stock_lookup import MockStockLookup


class BrokenLookup:
    def get_stock(self, product_id):
        raise ConnectionError("stock service unreachable")

    def get_many(self, product_ids):
        raise ConnectionError("stock service unreachable")


class FlakyLookup(MockStockLookup):
    """Fails on the first bulk lookup, then behaves."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def get_many(self, product_ids):
        self.calls += 1
        if self.calls == 1:
            raise ConnectionError("first call fails")
        return super().get_many(product_ids)


async def test_add_merges_stock_and_snapshot(favourites, make_product):
    notice = await favourites.add_to_favourites(
        make_product("9", name="Bleach 2L", price=32.5, brand="Sparkle")
    )

    assert notice.level == "success"
    assert favourites.is_favourite("9")
    item = favourites.get("9")
    assert item.id.startswith("fav_9_")
    assert item.stock_count == 1
    assert item.in_stock is True
    assert item.category == "Unknown"
    assert item.brand == "Sparkle"
    assert item.stock_status == "low-stock"


async def test_duplicate_add_is_a_noop_with_notice(favourites, make_product):
    await favourites.add_to_favourites(make_product("3"))
    original = favourites.get("3").added_at

    notice = await favourites.add_to_favourites(make_product("3", name="Renamed"))

    assert notice.level == "info"
    assert len(favourites) == 1
    assert favourites.get("3").added_at == original
    assert favourites.get("3").name == "Glass Cleaner 750ml"


async def test_lookup_miss_defaults_to_out_of_stock(favourites, make_product):
    await favourites.add_to_favourites(make_product("404"))

    item = favourites.get("404")
    assert item.stock_count == 0
    assert item.in_stock is False
    assert item.stock_status == "out-of-stock"


async def test_lookup_failure_leaves_stock_unknown(favourites_store, settings, make_product):
    favourites = FavouritesService(favourites_store, BrokenLookup(), settings)

    notice = await favourites.add_to_favourites(make_product("1"))

    assert notice.level == "success"
    item = favourites.get("1")
    assert item.stock_count == 0
    assert item.stock_status == "unknown"


async def test_refresh_with_failing_lookup_keeps_items(favourites_store, settings, make_product):
    favourites = FavouritesService(favourites_store, MockStockLookup(), settings)
    await favourites.add_to_favourites(make_product("9"))
    favourites.stock_lookup = BrokenLookup()

    assert await favourites.refresh_stock() == 0

    item = favourites.get("9")
    assert item.stock_count == 1
    assert item.stock_status == "low-stock"


async def test_remove_is_idempotent(favourites, make_product):
    await favourites.add_to_favourites(make_product("1"))
    await favourites.add_to_favourites(make_product("2"))

    favourites.remove_from_favourites("1")
    once = [it.model_dump() for it in favourites.items]
    notice = favourites.remove_from_favourites("1")

    assert notice.level == "info"
    assert [it.model_dump() for it in favourites.items] == once


async def test_clear_favourites(favourites, favourites_store, make_product):
    await favourites.add_to_favourites(make_product("1"))
    favourites.clear_favourites()
    await favourites.flush()

    assert len(favourites) == 0
    assert favourites_store.load() == []


async def test_refresh_updates_stock_without_removing(favourites, stock_lookup, make_product):
    await favourites.add_to_favourites(make_product("9"))
    assert favourites.get("9").stock_count == 1

    stock_lookup.set_stock("9", 0, False)
    changed = await favourites.refresh_stock()

    assert changed == 1
    assert favourites.is_favourite("9")
    assert favourites.get("9").stock_count == 0
    assert favourites.get("9").stock_status == "out-of-stock"


async def test_refresh_can_bring_item_back_in_stock(favourites, stock_lookup, make_product):
    await favourites.add_to_favourites(make_product("5"))
    assert favourites.get("5").stock_status == "out-of-stock"

    stock_lookup.set_stock("5", 40)
    await favourites.refresh_stock()

    assert favourites.get("5").stock_status == "in-stock"


async def test_refresh_reports_only_changes(favourites, stock_lookup, make_product):
    await favourites.add_to_favourites(make_product("1"))
    await favourites.add_to_favourites(make_product("2"))

    assert await favourites.refresh_stock() == 0

    stock_lookup.set_stock("2", 12)
    assert await favourites.refresh_stock() == 1


async def test_refresh_treats_vanished_product_as_out_of_stock(favourites, stock_lookup, make_product):
    await favourites.add_to_favourites(make_product("8"))
    stock_lookup.forget("8")

    await favourites.refresh_stock()

    assert favourites.is_favourite("8")
    assert favourites.get("8").in_stock is False


def test_update_stock_status_only_touches_stock_fields(favourites_store, stock_lookup, settings):
    from storefront.schemas.favourite import FavouriteItem

    favourites_store.save(
        [FavouriteItem(id="fav_1_1", product_id="1", name="Mop", price=99.0, stock_count=7, in_stock=True)]
    )
    favourites = FavouritesService(favourites_store, stock_lookup, settings)
    favourites.load()
    before = favourites.get("1").model_dump()

    assert favourites.update_stock_status("1", StockLevel(stock_count=2, in_stock=True)) is True
    after = favourites.get("1").model_dump()

    for field in ("id", "product_id", "name", "price", "added_at"):
        assert after[field] == before[field]
    assert after["stock_count"] == 2
    assert favourites.update_stock_status("missing", StockLevel(stock_count=1, in_stock=True)) is False


async def test_periodic_refresh_runs_until_cancelled(favourites, stock_lookup, make_product):
    await favourites.add_to_favourites(make_product("9"))

    handle = favourites.start_stock_refresh(interval=0.01)
    stock_lookup.set_stock("9", 0, False)
    await asyncio.sleep(0.1)

    assert favourites.get("9").stock_count == 0

    await handle.stop()
    assert handle.cancelled

    stock_lookup.set_stock("9", 50)
    await asyncio.sleep(0.05)
    assert favourites.get("9").stock_count == 0


async def test_periodic_refresh_survives_lookup_errors(favourites_store, settings, make_product):
    lookup = FlakyLookup()
    favourites = FavouritesService(favourites_store, lookup, settings)
    await favourites.add_to_favourites(make_product("9"))

    lookup.set_stock("9", 20)
    handle = favourites.start_stock_refresh(interval=0.01, jitter=0.01)
    await asyncio.sleep(0.15)
    await handle.stop()

    assert lookup.calls >= 2
    assert favourites.get("9").stock_count == 20


async def test_start_refresh_rejects_bad_interval(favourites):
    with pytest.raises(ValueError):
        favourites.start_stock_refresh(interval=0)


async def test_favourites_survive_reload(favourites, favourites_store, stock_lookup, settings, make_product):
    await favourites.add_to_favourites(make_product("1"))
    await favourites.add_to_favourites(make_product("2"))
    await favourites.flush()

    reloaded = FavouritesService(favourites_store, stock_lookup, settings)
    reloaded.load()

    assert [it.product_id for it in reloaded.items] == ["1", "2"]
    assert reloaded.items == favourites.items


@pytest.mark.parametrize(
    "count, in_stock, expected",
    [
        (0, True, "out-of-stock"),
        (5, False, "out-of-stock"),
        (1, True, "low-stock"),
        (3, True, "low-stock"),
        (4, True, "running-low"),
        (10, True, "running-low"),
        (11, True, "in-stock"),
    ],
)
def test_classify_stock(count, in_stock, expected):
    from datetime import datetime, timezone

    assert classify_stock(count, in_stock, datetime.now(timezone.utc)) == expected


def test_classify_stock_unknown_until_checked():
    assert classify_stock(50, True, None) == "unknown"
