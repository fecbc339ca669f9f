"""Tests for the synchronous checkout path and its compensating rollback."""

from sqlalchemy import func, select

from storefront.data.models import AddressModel, InventoryReservationModel, OrderModel, PaymentModel
from storefront.domain.errors import ErrorKind, GatewayError
from storefront.repos.cart_repo import CartRepo


def count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestCheckout:
    def test_checkout_reserves_and_keeps_cart(self, db, checkout_service, ledger, seeded, fill_cart):
        fill_cart(seeded.alice, [(seeded.widget, 2), (seeded.gizmo, 1)])

        result = checkout_service.checkout(
            seeded.alice,
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )

        outcome = result.value
        assert outcome.next_step == "payment"
        assert outcome.payment_intent is None
        assert outcome.order.status == "PENDING"
        assert {i.product_id: i.quantity for i in outcome.order.items} == {seeded.widget: 2, seeded.gizmo: 1}
        assert ledger.available(seeded.widget) == 8
        assert ledger.available(seeded.gizmo) == 4
        # koszyk czysci dopiero webhook
        assert len(CartRepo(db).get_cart_items(seeded.alice)) == 2

    def test_explicit_items_override_cart(self, checkout_service, seeded, fill_cart):
        fill_cart(seeded.alice, [(seeded.widget, 2)])

        outcome = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.gizmo, 1)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        ).value

        assert [i.product_id for i in outcome.order.items] == [seeded.gizmo]

    def test_empty_cart(self, checkout_service, seeded):
        result = checkout_service.checkout(
            seeded.alice,
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )
        assert result.error.kind == ErrorKind.EMPTY_CART

    def test_missing_addresses(self, db, checkout_service, seeded):
        result = checkout_service.checkout(seeded.alice, items=[(seeded.widget, 1)])

        assert result.error.kind == ErrorKind.ADDRESS_INVALID
        assert count(db, OrderModel) == 0

    def test_inline_address_used_for_shipping_and_billing(self, db, checkout_service, seeded):
        outcome = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 1)],
            shipping_address={"street": "5 New Rd", "city": "Delhi", "state": "DL", "zip_code": "110001"},
        ).value

        order = outcome.order
        assert order.shipping_address_id == order.billing_address_id
        address = db.get(AddressModel, order.shipping_address_id)
        assert address.user_id == seeded.alice
        assert address.line1 == "5 New Rd"
        assert address.full_name == "Alice"
        assert address.country == "India"

    def test_incomplete_inline_address(self, db, checkout_service, seeded):
        result = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 1)],
            shipping_address={"street": "5 New Rd", "city": "Delhi"},
        )

        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.details["missing"] == ["state", "zip_code"]
        assert count(db, OrderModel) == 0


class TestCheckoutRollback:
    def test_insufficient_stock_deletes_order(self, db, checkout_service, ledger, seeded):
        result = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 1), (seeded.gadget, 2)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )

        assert result.error.kind == ErrorKind.INSUFFICIENT_STOCK
        assert result.error.details == {"product_id": seeded.gadget, "available": 1, "requested": 2}
        assert count(db, OrderModel) == 0
        assert count(db, InventoryReservationModel) == 0
        assert ledger.available(seeded.widget) == 10

    def test_two_checkouts_for_last_unit(self, db, checkout_service, ledger, seeded):
        first = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.gadget, 1)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )
        second = checkout_service.checkout(
            seeded.bob,
            items=[(seeded.gadget, 1)],
            shipping_address_id=seeded.bob_address,
            billing_address_id=seeded.bob_address,
        )

        assert first.ok
        assert second.error.kind == ErrorKind.INSUFFICIENT_STOCK
        assert count(db, OrderModel) == 1
        assert ledger.inventory_status(seeded.gadget).value == {
            "product_id": seeded.gadget,
            "total": 1,
            "locked": 1,
            "available": 0,
        }

    def test_overlapping_checkout_with_ample_stock(self, db, checkout_service, ledger, lock_service, seeded, monkeypatch):
        lock_service.locks[seeded.widget] = "order:999"
        acquire = lock_service.acquire_product_lock

        def other_checkout_finishes(product_id, token, ttl):
            # cudzy checkout konczy sie po pierwszej odmowie
            if lock_service.refused:
                lock_service.release_product_lock(product_id, "order:999")
            return acquire(product_id, token, ttl)

        monkeypatch.setattr(lock_service, "acquire_product_lock", other_checkout_finishes)

        result = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 1)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )

        assert result.ok
        assert lock_service.refused == [seeded.widget]
        assert count(db, OrderModel) == 1
        assert ledger.available(seeded.widget) == 9

    def test_stock_returns_after_hold_expires(self, checkout_service, seeded, clock):
        checkout_service.checkout(
            seeded.alice,
            items=[(seeded.gadget, 1)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
        )
        clock.advance(minutes=15, seconds=1)

        retry = checkout_service.checkout(
            seeded.bob,
            items=[(seeded.gadget, 1)],
            shipping_address_id=seeded.bob_address,
            billing_address_id=seeded.bob_address,
        )

        assert retry.ok


class TestCheckoutWithIntent:
    def test_intent_created_in_same_call(self, db, checkout_service, gateway, seeded):
        outcome = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 2)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
            create_intent=True,
        ).value

        intent = outcome.payment_intent
        # 200 + 3% + 50
        assert intent.amount == 25600
        assert intent.currency == "INR"
        assert intent.gateway_order_id == "order_test_1"
        assert intent.key_id == "rzp_test_key"
        assert gateway.calls[0][0] == "/orders"
        assert gateway.calls[0][1]["receipt"] == outcome.order.order_number

    def test_gateway_failure_leaves_no_orphans(self, db, checkout_service, gateway, ledger, seeded):
        gateway.fail_with = GatewayError("gateway unavailable")

        result = checkout_service.checkout(
            seeded.alice,
            items=[(seeded.widget, 2)],
            shipping_address_id=seeded.alice_address,
            billing_address_id=seeded.alice_address,
            create_intent=True,
        )

        assert result.error.kind == ErrorKind.GATEWAY_ERROR
        assert result.error.status_code == 502
        assert count(db, OrderModel) == 0
        assert count(db, InventoryReservationModel) == 0
        assert count(db, PaymentModel) == 0
        assert ledger.available(seeded.widget) == 10
