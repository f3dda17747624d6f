import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest

from teastore.services.errors import InvalidInput, ProductNotFound
from teastore.services.reconciler import SubmittedLine, SubmittedOrder, build_profile, reconcile


def _user(**kwargs):
    defaults = dict(id="u-1", xp=0, phone_verified=False, first_order_discount_used=True, custom_discount=None)
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


CATALOG = {5: Decimal("100"), 7: Decimal("12.5")}


def test_client_price_is_ignored():
    submitted = SubmittedOrder(lines=(SubmittedLine(product_id=5, quantity=10, price=1),))
    trusted = reconcile(submitted, CATALOG, _user())
    assert trusted.final_total == 1000
    assert trusted.lines[0].unit_price == 100


def test_guest_gets_no_discounts():
    submitted = SubmittedOrder(lines=(SubmittedLine(5, 3),))
    trusted = reconcile(submitted, CATALOG, None)
    assert trusted.final_total == 300
    assert not trusted.consumed_first_order_discount
    assert not trusted.consumed_custom_discount


def test_full_stack_for_verified_user():
    user = _user(xp=7500, phone_verified=True, first_order_discount_used=False, custom_discount=5)
    trusted = reconcile(SubmittedOrder(lines=(SubmittedLine(5, 10),)), CATALOG, user)
    assert trusted.breakdown.first_order_amount == 200
    assert trusted.breakdown.loyalty_amount == 80
    assert trusted.breakdown.custom_amount == 36
    assert trusted.final_total == 684
    assert trusted.consumed_first_order_discount
    assert trusted.consumed_custom_discount


def test_no_loyalty_without_verified_phone():
    user = _user(xp=50000, phone_verified=False)
    trusted = reconcile(SubmittedOrder(lines=(SubmittedLine(5, 1),)), CATALOG, user)
    assert trusted.profile.loyalty_percent == 0
    assert trusted.breakdown.loyalty_amount == 0
    assert trusted.final_total == 100


def test_missing_product_is_fatal():
    submitted = SubmittedOrder(lines=(SubmittedLine(5, 1), SubmittedLine(99, 1)))
    with pytest.raises(ProductNotFound) as exc:
        reconcile(submitted, CATALOG, None)
    assert exc.value.product_id == 99


def test_reconcile_does_not_consume_anything():
    user = _user(first_order_discount_used=False, custom_discount=10)
    submitted = SubmittedOrder(lines=(SubmittedLine(7, 8),))
    first = reconcile(submitted, CATALOG, user)
    second = reconcile(submitted, CATALOG, user)
    assert first.consumed_first_order_discount and second.consumed_first_order_discount
    assert first.consumed_custom_discount and second.consumed_custom_discount
    assert user.first_order_discount_used is False
    assert user.custom_discount == 10
    assert first == second


def test_total_mismatch_is_logged_but_recomputed_total_wins(caplog):
    submitted = SubmittedOrder(lines=(SubmittedLine(5, 10, price=1),), total=10)
    with caplog.at_level(logging.WARNING, logger="teastore.services.reconciler"):
        trusted = reconcile(submitted, CATALOG, _user())
    assert trusted.final_total == 1000
    assert trusted.client_total_mismatch
    assert "differs from recomputed" in caplog.text


def test_total_within_tolerance_is_not_a_mismatch(caplog):
    submitted = SubmittedOrder(lines=(SubmittedLine(7, 3),), total=38)  # 37.5
    with caplog.at_level(logging.WARNING, logger="teastore.services.reconciler"):
        trusted = reconcile(submitted, CATALOG, None)
    assert not trusted.client_total_mismatch
    assert caplog.text == ""


def test_out_of_range_custom_discount_rejected():
    user = _user(custom_discount=120)
    with pytest.raises(InvalidInput):
        reconcile(SubmittedOrder(lines=(SubmittedLine(5, 1),)), CATALOG, user)


def test_from_payload_accepts_product_id_aliases():
    submitted = SubmittedOrder.from_payload(
        [{"productId": 5, "quantity": 2, "price": 1}, {"id": 7, "quantity": 4}], total="199"
    )
    assert [l.product_id for l in submitted.lines] == [5, 7]
    trusted = reconcile(submitted, CATALOG, None)
    assert trusted.final_total == 250


@pytest.mark.parametrize("items", [
    "nope",
    [{"quantity": 1}],
    [{"product_id": "5", "quantity": 1}],
    [{"product_id": 5, "quantity": "1"}],
    [5],
])
def test_from_payload_rejects_malformed_items(items):
    with pytest.raises(InvalidInput):
        SubmittedOrder.from_payload(items)


def test_build_profile_first_order_percent_is_configurable():
    profile = build_profile(_user(first_order_discount_used=False), first_order_percent=10)
    trusted_total = reconcile(
        SubmittedOrder(lines=(SubmittedLine(5, 1),)), CATALOG, _user(first_order_discount_used=False),
        first_order_percent=10,
    ).final_total
    assert profile.first_order_percent == 10
    assert trusted_total == 90
