"""Tests for InventoryLedger: reservations, expiry, deduction and restock."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from storefront.data.models import InventoryReservationModel
from storefront.domain.errors import ErrorKind
from storefront.domain.result import Err
from storefront.services.inventory_ledger import InventoryLedger
from storefront.tasks.sweep import sweep_expired_reservations


def reservation_count(db):
    return db.execute(select(func.count()).select_from(InventoryReservationModel)).scalar_one()


class TestAvailability:
    def test_available_equals_stock_without_reservations(self, ledger, seeded):
        assert ledger.available(seeded.widget) == 10

    def test_unknown_product_has_nothing_available(self, ledger, seeded):
        assert ledger.available(999) == 0

    def test_inventory_status(self, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 3)])
        ledger.reserve(order.id, [(seeded.widget, 3)])

        status = ledger.inventory_status(seeded.widget).value
        assert status == {"product_id": seeded.widget, "total": 10, "locked": 3, "available": 7}

    def test_inventory_status_unknown_product(self, ledger, seeded):
        result = ledger.inventory_status(999)
        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.NOT_FOUND


class TestReserve:
    def test_reserve_locks_quantity(self, ledger, seeded, place_order, clock):
        order = place_order([(seeded.widget, 3)])

        result = ledger.reserve(order.id, [(seeded.widget, 3)])

        assert result.ok
        [reservation] = result.value
        assert reservation.order_id == order.id
        assert reservation.quantity == 3
        assert ledger.available(seeded.widget) == 7

    def test_reserve_is_all_or_nothing(self, db, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 2), (seeded.gadget, 1)])

        result = ledger.reserve(order.id, [(seeded.widget, 2), (seeded.gadget, 5)])

        assert isinstance(result, Err)
        assert result.error.kind == ErrorKind.INSUFFICIENT_STOCK
        assert result.error.details == {"product_id": seeded.gadget, "available": 1, "requested": 5}
        assert "Insufficient stock for Gadget" in result.error.message
        assert ledger.available(seeded.widget) == 10
        assert reservation_count(db) == 0

    def test_duplicate_lines_are_merged(self, db, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 5)])

        result = ledger.reserve(order.id, [(seeded.widget, 2), (seeded.widget, 3)])

        assert result.ok
        assert len(result.value) == 1
        assert result.value[0].quantity == 5

    def test_second_order_cannot_take_reserved_stock(self, ledger, seeded, place_order):
        first = place_order([(seeded.gadget, 1)])
        second = place_order([(seeded.gadget, 1)])

        assert ledger.reserve(first.id, [(seeded.gadget, 1)]).ok
        result = ledger.reserve(second.id, [(seeded.gadget, 1)])

        assert result.error.kind == ErrorKind.INSUFFICIENT_STOCK
        assert result.error.details["available"] == 0

    def test_non_positive_quantity_rejected(self, ledger, seeded):
        result = ledger.reserve(1, [(seeded.widget, 0)])
        assert result.error.kind == ErrorKind.VALIDATION

    def test_empty_items_rejected(self, ledger, seeded):
        assert ledger.reserve(1, []).error.kind == ErrorKind.VALIDATION

    def test_unknown_product(self, ledger, seeded):
        result = ledger.reserve(1, [(999, 1)])
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_locks_released_after_reserve(self, ledger, lock_service, seeded, place_order):
        order = place_order([(seeded.widget, 1), (seeded.gizmo, 1)])

        ledger.reserve(order.id, [(seeded.gizmo, 1), (seeded.widget, 1)])

        # kolejnosc po id produktu
        assert lock_service.acquired == sorted([seeded.widget, seeded.gizmo])
        assert lock_service.locks == {}

    def test_locks_released_after_failure(self, ledger, lock_service, seeded, place_order):
        order = place_order([(seeded.gadget, 1)])

        ledger.reserve(order.id, [(seeded.gadget, 3)])

        assert lock_service.locks == {}

    def test_waits_for_busy_lock(self, db, ledger, lock_service, seeded, place_order, monkeypatch):
        order = place_order([(seeded.widget, 1)])
        lock_service.locks[seeded.widget] = "order:other"
        acquire = lock_service.acquire_product_lock

        def other_checkout_finishes(product_id, token, ttl):
            # drugi checkout zwalnia lock po dwoch odmowach
            if len(lock_service.refused) == 2:
                lock_service.release_product_lock(product_id, "order:other")
            return acquire(product_id, token, ttl)

        monkeypatch.setattr(lock_service, "acquire_product_lock", other_checkout_finishes)

        result = ledger.reserve(order.id, [(seeded.widget, 1)])

        assert result.ok
        assert lock_service.refused == [seeded.widget, seeded.widget]
        assert reservation_count(db) == 1
        assert ledger.available(seeded.widget) == 9
        assert lock_service.locks == {}

    def test_lock_held_past_wait_is_transaction_failure(self, db, lock_service, seeded, clock, place_order):
        ledger = InventoryLedger(db, lock_service=lock_service, lock_wait=0.2, clock=clock)
        order = place_order([(seeded.widget, 1)])
        lock_service.locks[seeded.widget] = "order:other"

        result = ledger.reserve(order.id, [(seeded.widget, 1)])

        assert result.error.kind == ErrorKind.TRANSACTION_FAILURE
        assert result.error.status_code == 500
        assert result.error.retryable
        assert len(lock_service.refused) >= 2
        assert reservation_count(db) == 0
        # cudzy lock zostaje
        assert lock_service.locks[seeded.widget] == "order:other"

    def test_lock_backend_down_is_transaction_failure(self, db, seeded, clock, place_order):
        class BrokenLocks:
            def acquire_product_lock(self, product_id, token, ttl):
                raise RedisConnectionError("redis down")

            def release_product_lock(self, product_id, token):
                return False

        ledger = InventoryLedger(db, lock_service=BrokenLocks(), clock=clock)
        order = place_order([(seeded.widget, 1)])

        result = ledger.reserve(order.id, [(seeded.widget, 1)])

        assert result.error.kind == ErrorKind.TRANSACTION_FAILURE

    def test_reserve_without_lock_service(self, db, seeded, clock, place_order):
        ledger = InventoryLedger(db, clock=clock)
        order = place_order([(seeded.widget, 4)])

        assert ledger.reserve(order.id, [(seeded.widget, 4)]).ok
        assert ledger.available(seeded.widget) == 6


class TestExpiry:
    def test_reservation_holds_for_fifteen_minutes(self, ledger, seeded, place_order, clock):
        order = place_order([(seeded.widget, 3)])
        ledger.reserve(order.id, [(seeded.widget, 3)])

        clock.advance(minutes=14, seconds=59)
        assert ledger.available(seeded.widget) == 7

        clock.advance(seconds=2)
        assert ledger.available(seeded.widget) == 10

    def test_sweep_removes_only_expired(self, db, ledger, seeded, place_order, clock):
        old = place_order([(seeded.widget, 2)])
        ledger.reserve(old.id, [(seeded.widget, 2)])

        clock.advance(minutes=10)
        fresh = place_order([(seeded.widget, 1)])
        ledger.reserve(fresh.id, [(seeded.widget, 1)])

        clock.advance(minutes=5, seconds=1)
        assert ledger.sweep_expired() == 1
        assert reservation_count(db) == 1
        assert ledger.available(seeded.widget) == 9

    def test_sweep_before_expiry_removes_nothing(self, db, ledger, seeded, place_order, clock):
        order = place_order([(seeded.widget, 2)])
        ledger.reserve(order.id, [(seeded.widget, 2)])

        clock.advance(minutes=14)
        assert ledger.sweep_expired() == 0
        assert reservation_count(db) == 1

    def test_sweep_task_uses_own_session(self, database, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 2)])
        ledger.reserve(order.id, [(seeded.widget, 2)])

        # zegar testowy jest w przeszlosci, prawdziwy czas widzi rezerwacje jako wygasle
        assert sweep_expired_reservations(database) == 1


class TestRelease:
    def test_release_returns_quantity_to_pool(self, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 3)])
        ledger.reserve(order.id, [(seeded.widget, 3)])

        assert ledger.release(order.id) == 1
        assert ledger.available(seeded.widget) == 10

    def test_release_without_reservations(self, ledger, seeded):
        assert ledger.release(12345) == 0


class TestConfirmDeduction:
    def test_reservations_become_stock_deduction(self, db, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 3), (seeded.gadget, 1)])
        ledger.reserve(order.id, [(seeded.widget, 3), (seeded.gadget, 1)])

        deducted = ledger.confirm_deduction(order.id)
        db.commit()

        assert deducted == 4
        assert reservation_count(db) == 0
        widget = ledger.inventory_status(seeded.widget).value
        assert widget == {"product_id": seeded.widget, "total": 7, "locked": 0, "available": 7}
        assert ledger.inventory_status(seeded.gadget).value["total"] == 0

    def test_lapsed_reservations_deduct_order_items(self, db, ledger, seeded, place_order, clock):
        order = place_order([(seeded.widget, 3)])
        ledger.reserve(order.id, [(seeded.widget, 3)])
        clock.advance(minutes=20)
        ledger.sweep_expired()

        deducted = ledger.confirm_deduction(order.id)
        db.commit()

        assert deducted == 3
        assert ledger.inventory_status(seeded.widget).value["total"] == 7

    def test_lapsed_deduction_can_oversell(self, db, ledger, seeded, place_order, clock):
        first = place_order([(seeded.gadget, 1)])
        second = place_order([(seeded.gadget, 1)])
        ledger.reserve(first.id, [(seeded.gadget, 1)])
        clock.advance(minutes=20)
        ledger.sweep_expired()
        ledger.reserve(second.id, [(seeded.gadget, 1)])

        ledger.confirm_deduction(second.id)
        ledger.confirm_deduction(first.id)
        db.commit()

        assert ledger.inventory_status(seeded.gadget).value["total"] == -1
        assert ledger.available(seeded.gadget) == 0


class TestRestock:
    def test_restock_returned_paid_order(self, db, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 3)])
        order.status = "RETURNED"
        order.payment_status = "PAID"
        db.commit()

        result = ledger.restock(order.id)

        assert result.value == 3
        assert ledger.inventory_status(seeded.widget).value["total"] == 13
        assert order.restocked_at is not None

    def test_restock_only_once(self, db, ledger, seeded, place_order):
        order = place_order([(seeded.widget, 3)])
        order.status = "CANCELLED"
        order.payment_status = "REFUNDED"
        db.commit()

        assert ledger.restock(order.id).ok
        result = ledger.restock(order.id)

        assert result.error.kind == ErrorKind.INVALID_TRANSITION
        assert ledger.inventory_status(seeded.widget).value["total"] == 13

    @pytest.mark.parametrize("status,payment_status", [
        ("PENDING", "PENDING"),
        ("CANCELLED", "PENDING"),
        ("DELIVERED", "PAID"),
    ])
    def test_restock_rejected(self, db, ledger, seeded, place_order, status, payment_status):
        order = place_order([(seeded.widget, 1)])
        order.status = status
        order.payment_status = payment_status
        db.commit()

        assert ledger.restock(order.id).error.kind == ErrorKind.INVALID_TRANSITION

    def test_restock_unknown_order(self, ledger, seeded):
        assert ledger.restock(999).error.kind == ErrorKind.NOT_FOUND
