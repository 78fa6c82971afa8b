import pytest

from storefront.core.errors import CartLineNotFoundError
from storefront.services.cart_service import CartService, shipping_for


def test_add_update_and_remove_scenario(cart, make_product):
    line = cart.add_to_cart(make_product("7", price=18.75), 2)

    cart.update_quantity(line.id, 5)
    assert cart.totals().subtotal == 93.75

    assert cart.update_quantity(line.id, 0) is None
    assert cart.lines == []
    assert cart.totals().subtotal == 0


@pytest.mark.parametrize("quantities", [[1], [1, 1, 1], [2, 5, 3], [10, 1]])
def test_repeated_adds_keep_one_line_per_product(cart, make_product, quantities):
    for n in quantities:
        cart.add_to_cart(make_product("4"), n)

    lines = [ln for ln in cart.lines if ln.product_id == "4"]
    assert len(lines) == 1
    assert lines[0].quantity == sum(quantities)


def test_add_snapshots_product_fields(cart, make_product):
    product = make_product(
        "3",
        name="Floor Polish",
        price=49.99,
        original_price=59.99,
        sku="BB-FP-001",
        image_url="https://cdn.example.com/floor-polish.png",
    )
    line = cart.add_to_cart(product)

    product.price = 1.0
    assert line.price == 49.99
    assert line.original_price == 59.99
    assert line.sku == "BB-FP-001"
    assert line.image_url == "https://cdn.example.com/floor-polish.png"


def test_add_rejects_non_positive_quantity(cart, make_product):
    with pytest.raises(ValueError):
        cart.add_to_cart(make_product(), 0)


def test_update_quantity_has_no_upper_bound(cart, make_product):
    line = cart.add_to_cart(make_product())
    cart.update_quantity(line.id, 250)
    assert cart.lines[0].quantity == 250


def test_update_unknown_line_raises(cart):
    with pytest.raises(CartLineNotFoundError):
        cart.update_quantity("missing", 2)


def test_remove_line_is_idempotent(cart, make_product):
    keep = cart.add_to_cart(make_product("1", price=5.0))
    drop = cart.add_to_cart(make_product("2", price=7.0))

    cart.remove_line(drop.id)
    once = [ln.model_dump() for ln in cart.lines]
    cart.remove_line(drop.id)

    assert [ln.model_dump() for ln in cart.lines] == once
    assert [ln.id for ln in cart.lines] == [keep.id]


def test_totals_are_consistent(cart, make_product):
    cart.add_to_cart(make_product("1", price=18.75), 3)
    cart.add_to_cart(make_product("2", price=4.10), 2)
    cart.add_to_cart(make_product("3", price=120.0), 1)
    cart.apply_loyalty_points(150)
    cart.apply_promo_code("SPRING", 10)

    totals = cart.totals()
    expected_subtotal = sum(ln.price * ln.quantity for ln in cart.lines)

    assert totals.subtotal == pytest.approx(expected_subtotal)
    assert totals.total == pytest.approx(totals.subtotal - totals.discount_amount)
    assert totals.loyalty_points_used == 150
    assert totals.loyalty_discount == 15.0
    assert totals.discount_amount == 25.0
    assert totals.item_count == 6


def test_discount_is_capped_at_subtotal(cart, make_product):
    cart.add_to_cart(make_product("1", price=10.0))
    cart.apply_loyalty_points(1000)

    totals = cart.totals()
    assert totals.discount_amount == 10.0
    assert totals.total == 0.0


def test_discounts_are_recomputed_after_lines_change(cart, make_product):
    line = cart.add_to_cart(make_product("1", price=10.0), 5)
    cart.apply_promo_code("BIG", 30)
    assert cart.totals().total == 20.0

    cart.update_quantity(line.id, 2)
    totals = cart.totals()
    assert totals.discount_amount == 20.0
    assert totals.total == 0.0


def test_remove_discounts(cart, make_product):
    cart.add_to_cart(make_product("1", price=100.0))
    cart.apply_loyalty_points(100)
    cart.apply_promo_code("X", 5)

    cart.remove_loyalty_points()
    cart.remove_promo_code()

    totals = cart.totals()
    assert totals.discount_amount == 0
    assert totals.promo_code is None
    assert totals.total == 100.0


def test_clear_cart_drops_lines_and_discounts(cart, cart_store, make_product):
    cart.add_to_cart(make_product("1", price=10.0))
    cart.apply_loyalty_points(20)

    cart.clear_cart()

    assert cart.lines == []
    assert cart.totals().loyalty_points_used == 0
    assert cart_store.load() == []


def test_mutations_are_persisted(cart, cart_store, settings, make_product):
    line = cart.add_to_cart(make_product("1", price=10.0), 2)
    cart.add_to_cart(make_product("2", price=3.0))
    cart.update_quantity(line.id, 4)

    reloaded = CartService(cart_store, settings)
    reloaded.load()

    assert [(ln.product_id, ln.quantity) for ln in reloaded.lines] == [("1", 4), ("2", 1)]


def test_subscribers_are_notified_until_unsubscribed(cart, make_product):
    seen = []
    unsubscribe = cart.subscribe(lambda c: seen.append(len(c)))

    cart.add_to_cart(make_product("1"))
    cart.add_to_cart(make_product("2"))
    unsubscribe()
    cart.clear_cart()

    assert seen == [1, 2]


def test_failing_subscriber_does_not_break_mutation(cart, make_product):
    def boom(_):
        raise RuntimeError("listener crashed")

    cart.subscribe(boom)
    cart.add_to_cart(make_product("1"))

    assert len(cart) == 1


def test_merge_lines_sums_quantities(cart, make_product, kv, settings):
    from storefront.schemas.cart import CartLine
    from storefront.services.persistence import PersistentStore

    other = CartService(PersistentStore(kv, settings.CART_COLLECTION, "other", CartLine), settings)
    other.add_to_cart(make_product("1"), 2)
    other.add_to_cart(make_product("9"), 1)
    cart.add_to_cart(make_product("1"), 3)

    cart.merge_lines(other.lines)

    assert {ln.product_id: ln.quantity for ln in cart.lines} == {"1": 5, "9": 1}


def test_shipping_rule(settings):
    assert shipping_for(499.99, settings) == 50.0
    assert shipping_for(500.0, settings) == 0.0


def test_checkout_summary_adds_shipping(cart, make_product):
    cart.add_to_cart(make_product("1", price=100.0), 2)

    summary = cart.checkout_summary()
    assert summary.shipping_amount == 50.0
    assert summary.final_total == 250.0
    assert summary.max_quantity_per_line == 10

    cart.add_to_cart(make_product("2", price=300.0))
    summary = cart.checkout_summary()
    assert summary.shipping_amount == 0.0
    assert summary.final_total == 500.0


async def test_complete_checkout_clears_and_persists(cart, cart_store, make_product):
    cart.add_to_cart(make_product("1", price=60.0), 2)

    summary = await cart.complete_checkout()

    assert summary.totals.subtotal == 120.0
    assert summary.final_total == 170.0
    assert cart.lines == []
    assert cart.persistence.pending == 0
    assert cart_store.load() == []


async def test_complete_checkout_rejects_empty_cart(cart):
    with pytest.raises(ValueError):
        await cart.complete_checkout()


async def test_mutations_inside_event_loop_land_after_flush(cart, cart_store, make_product):
    for i in range(5):
        cart.add_to_cart(make_product(str(i), price=1.0))
    cart.remove_line(cart.lines[0].id)

    await cart.flush()

    assert [ln.product_id for ln in cart_store.load()] == ["1", "2", "3", "4"]
