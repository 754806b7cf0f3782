import pytest
import stripe
from conftest import FakeStripe

from storesync.commerce.stripe_io import StripeUpserter, unit_amount
from storesync.errors import StripeSyncError


def make_upserter(api, sleeps=None, **kwargs):
    sleeps = sleeps if sleeps is not None else []
    return StripeUpserter(
        api_key="sk_test_123",
        mode="test",
        currency="usd",
        api=api,
        sleep=sleeps.append,
        pacing=0,
        **kwargs,
    )


def test_unit_amount_rounds_half_up():
    assert unit_amount(750) == 75000
    assert unit_amount(19.99) == 1999
    assert unit_amount(19.995) == 2000
    assert unit_amount(0.1 + 0.2) == 30


def test_first_run_creates_product_price_and_link(fake_stripe):
    up = make_upserter(fake_stripe)
    url = up.ensure_link("Tent", "CYS-TENT-1", 750.00)

    assert url.startswith("https://buy.stripe.com/test_")
    (product,) = fake_stripe.products.values()
    assert product["metadata"] == {"sku": "CYS-TENT-1"}
    (price,) = fake_stripe.prices.values()
    assert price["unit_amount"] == 75000
    assert price["currency"] == "usd"
    assert price["lookup_key"] == "CYS-TENT-1"
    assert price["product"] == product["id"]
    (link,) = fake_stripe.links.values()
    assert link["line_items"] == [{"price": price["id"], "quantity": 1}]
    assert link["metadata"]["price_id"] == price["id"]
    assert link["metadata"]["mode"] == "test"
    create_call = [p for n, p in fake_stripe.calls if n == "Product.create"][0]
    assert create_call["api_key"] == "sk_test_123"


def test_second_run_reuses_everything(fake_stripe):
    up = make_upserter(fake_stripe)
    first = up.ensure_link("Tent", "CYS-TENT-1", 750)
    second = up.ensure_link("Tent", "CYS-TENT-1", 750)

    assert first == second
    assert len(fake_stripe.products) == 1
    assert len(fake_stripe.prices) == 1
    assert len(fake_stripe.links) == 1
    assert fake_stripe.count("Product.create") == 1
    assert fake_stripe.count("Price.create") == 1


def test_price_change_creates_new_price_on_same_product(fake_stripe):
    up = make_upserter(fake_stripe)
    old_url = up.ensure_link("Tent", "CYS-TENT-1", 750)
    new_url = up.ensure_link("Tent", "CYS-TENT-1", 699.5)

    assert new_url != old_url
    assert len(fake_stripe.products) == 1
    old, new = fake_stripe.prices.values()
    assert old["unit_amount"] == 75000 and old["lookup_key"] is None
    assert new["unit_amount"] == 69950 and new["lookup_key"] == "CYS-TENT-1"
    assert new["product"] == old["product"]
    # the old price keeps its link; nothing is deactivated
    assert all(link["active"] for link in fake_stripe.links.values())


def test_existing_product_found_by_search_is_reused(fake_stripe):
    fake_stripe.products["prod_9"] = {"id": "prod_9", "name": "Tent", "active": True,
                                      "metadata": {"sku": "CYS-TENT-1"}}
    up = make_upserter(fake_stripe)
    up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert fake_stripe.count("Product.create") == 0
    (price,) = fake_stripe.prices.values()
    assert price["product"] == "prod_9"


def test_failed_search_falls_back_to_list():
    api = FakeStripe(search_error=stripe.APIConnectionError("search unavailable"))
    api.products["prod_7"] = {"id": "prod_7", "name": "Renamed", "active": True,
                              "metadata": {"sku": "CYS-TENT-1"}}
    api.products["prod_8"] = {"id": "prod_8", "name": "Tent", "active": True, "metadata": {}}
    up = make_upserter(api)
    up.ensure_link("Tent", "CYS-TENT-1", 750)

    assert api.count("Product.list") == 1
    assert api.count("Product.create") == 0
    (price,) = api.prices.values()
    assert price["product"] == "prod_7"


def test_fresh_policy_always_creates_a_link(fake_stripe):
    up = make_upserter(fake_stripe, link_policy="fresh")
    first = up.ensure_link("Tent", "CYS-TENT-1", 750)
    second = up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert first != second
    assert len(fake_stripe.links) == 2
    assert len(fake_stripe.prices) == 1
    assert fake_stripe.count("PaymentLink.list") == 0


def test_link_without_price_tag_is_reused_by_its_line_item(fake_stripe):
    up = make_upserter(fake_stripe)
    price_id = up.ensure_price("Tent", "CYS-TENT-1", 750)["id"]
    fake_stripe.links["plink_old"] = {
        "id": "plink_old", "active": True, "metadata": {"sku": "CYS-TENT-1"},
        "line_items": [{"price": price_id, "quantity": 1}],
        "url": "https://buy.stripe.com/test_old",
    }

    assert up.ensure_link("Tent", "CYS-TENT-1", 750) == "https://buy.stripe.com/test_old"
    assert len(fake_stripe.links) == 1
    (params,) = [p for name, p in fake_stripe.calls if name == "PaymentLink.list"]
    assert params["expand"] == ["data.line_items"]


def test_bundle_link_with_other_items_is_not_reused(fake_stripe):
    up = make_upserter(fake_stripe)
    price_id = up.ensure_price("Tent", "CYS-TENT-1", 750)["id"]
    fake_stripe.links["plink_bundle"] = {
        "id": "plink_bundle", "active": True, "metadata": {},
        "line_items": [{"price": price_id, "quantity": 1}, {"price": "price_other", "quantity": 1}],
        "url": "https://buy.stripe.com/test_bundle",
    }

    url = up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert url != "https://buy.stripe.com/test_bundle"
    assert len(fake_stripe.links) == 2


def test_rate_limit_is_retried_with_linear_backoff(fake_stripe):
    sleeps = []
    up = make_upserter(fake_stripe, sleeps=sleeps, backoff=0.5)
    fake_stripe.rate_limits = 3
    url = up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert url
    assert sleeps == [0.5, 1.0, 1.5]


def test_rate_limit_gives_up_and_reports_sku(fake_stripe):
    up = make_upserter(fake_stripe)
    fake_stripe.rate_limits = 4
    with pytest.raises(StripeSyncError) as exc:
        up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert exc.value.sku == "CYS-TENT-1"
    assert str(exc.value).startswith("CYS-TENT-1: ")
    assert fake_stripe.count("Price.list") == 4


def test_pacing_sleeps_before_each_call(fake_stripe):
    sleeps = []
    up = StripeUpserter("sk_test_123", mode="test", api=fake_stripe, sleep=sleeps.append, pacing=0.12)
    up.ensure_link("Tent", "CYS-TENT-1", 750)
    assert len(sleeps) == len(fake_stripe.calls)
    assert set(sleeps) == {0.12}


def test_find_price_reports_lookup(fake_stripe):
    up = make_upserter(fake_stripe)
    up.ensure_link("Tent", "CYS-TENT-1", 750)
    res = up.find_price("CYS-TENT-1")
    assert res["ok"] is True
    assert res["amount"] == 75000
    assert res["currency"] == "usd"
    assert res["product_id"] == "prod_1"
    assert up.find_price("NOPE")["ok"] is False


def test_find_price_reports_rate_limit(fake_stripe):
    up = make_upserter(fake_stripe)
    fake_stripe.rate_limits = 10
    res = up.find_price("CYS-TENT-1")
    assert res == {"sku": "CYS-TENT-1", "ok": False, "mode": "test", "type": "rate_limit",
                   "message": "Gave up after retries"}
