"""Backorder lifecycle and its flush-time guards."""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    BackorderNotFoundError,
    BackorderStateError,
    InvalidQuantityError,
)
from ledger_modules.inventory.models import BackorderStatus
from ledger_modules.inventory.orm import Backorder


@pytest.fixture
def product_id():
    return uuid4()


class TestBackorderLifecycle:
    def test_create_waits_for_stock(self, backorder_service, product_id, deterministic_clock):
        info = backorder_service.create_backorder("item-1", product_id, 5, notes="rear tyre")

        assert info.status == BackorderStatus.WAITING_STOCK
        assert info.qty_pending == 5
        assert info.notes == "rear tyre"
        assert info.queued_at == deterministic_clock.now()

    @pytest.mark.parametrize("qty", [0, -2])
    def test_create_requires_positive_qty(self, backorder_service, product_id, qty):
        with pytest.raises(InvalidQuantityError):
            backorder_service.create_backorder("item-1", product_id, qty)

    def test_mark_ready(self, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 2)
        assert backorder_service.mark_ready(info.id).status == BackorderStatus.READY

        with pytest.raises(BackorderStateError):
            backorder_service.mark_ready(info.id)

    def test_partial_then_full_allocation(self, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 5)

        partial = backorder_service.allocate(info.id, 2)
        assert partial.qty_pending == 3
        assert partial.status == BackorderStatus.WAITING_STOCK

        full = backorder_service.allocate(info.id, 10)
        assert full.qty_pending == 0
        assert full.status == BackorderStatus.FULFILLED

    def test_fulfilled_is_terminal(self, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 1)
        backorder_service.allocate(info.id, 1)

        with pytest.raises(BackorderStateError):
            backorder_service.allocate(info.id, 1)
        with pytest.raises(BackorderStateError):
            backorder_service.cancel(info.id)

    def test_cancel(self, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 4)
        assert backorder_service.cancel(info.id).status == BackorderStatus.CANCELED
        assert backorder_service.list_open(product_id) == []

    def test_allocate_available_oldest_first(
        self, backorder_service, product_id, deterministic_clock
    ):
        first = backorder_service.create_backorder("item-1", product_id, 3)
        deterministic_clock.advance(60)
        second = backorder_service.create_backorder("item-2", product_id, 4)

        touched = backorder_service.allocate_available(product_id, 5)

        assert [(b.id, b.qty_pending) for b in touched] == [(first.id, 0), (second.id, 2)]
        assert [b.id for b in backorder_service.list_open(product_id)] == [second.id]

    def test_unknown_backorder(self, backorder_service):
        with pytest.raises(BackorderNotFoundError):
            backorder_service.get_backorder(uuid4())


class TestBackorderGuards:
    def test_qty_pending_cannot_grow(self, session, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 3)
        row = session.get(Backorder, info.id)

        with pytest.raises(BackorderStateError):
            with session.begin_nested():
                row.qty_pending = 7
                session.flush()

        session.expire_all()
        assert session.get(Backorder, info.id).qty_pending == 3

    def test_closed_backorder_cannot_reopen(self, session, backorder_service, product_id):
        info = backorder_service.create_backorder("item-1", product_id, 3)
        backorder_service.cancel(info.id)
        row = session.get(Backorder, info.id)

        with pytest.raises(BackorderStateError):
            with session.begin_nested():
                row.status = BackorderStatus.WAITING_STOCK.value
                session.flush()
