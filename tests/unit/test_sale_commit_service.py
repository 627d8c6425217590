import logging
import pytest
from decimal import Decimal
from unittest.mock import MagicMock
from caja.cart.store import CartLine
from caja.errors import EmptyCart, InvalidTotal, MissingReference, PersistenceError
from caja.sales.models import Sale
from caja.sales.service import SaleCommitService

def _line(pid="p-agua", name="Agua fresca", price="20", qty=2, stock=10):
    return CartLine(product_id=pid, name=name, unit_price=Decimal(price), quantity=qty, stock_on_hand=stock)

def _sale_row(**kw):
    row = {
        "id": "5e1a2b3c-aaaa-4000-8000-000000000001",
        "business_id": "biz",
        "created_by": "user",
        "created_at": "2024-06-01T18:00:00+00:00",
        "payment_method": "cash",
        "subtotal": 40,
        "discount": 0,
        "tax": 0,
        "total": 40,
        "status": "paid",
    }
    row.update(kw)
    return row

def test_commit_writes_header_items_and_decrements_stock(local_store, ids):
    svc = SaleCommitService(local_store, local_store)
    result = svc.commit(
        business_id=ids.business,
        created_by=ids.owner,
        lines=[_line(qty=2), _line("p-taco", "Taco al pastor", "35.50", 1, 1)],
        payment_method="efectivo",
        discount=5,
    )
    sale = result.sale
    assert result.complete
    assert sale.payment_method == "cash"
    assert sale.subtotal == Decimal("75.50")
    assert sale.discount == Decimal("5.00")
    assert sale.total == Decimal("70.50")
    assert sale.tax == Decimal("0.00")
    assert sale.note is None
    assert sum(i.line_total for i in sale.items) == sale.subtotal

    stored = local_store.get_sale(sale.id, ids.business)
    assert [i.quantity for i in stored.items] == [2, 1]
    assert local_store.get_stock_levels(ids.business, ["p-agua", "p-taco"]) == {"p-agua": 8, "p-taco": 0}

def test_stock_is_clamped_at_zero_when_another_terminal_sold_first(local_store, ids):
    local_store.update_stock(ids.business, "p-agua", 1)
    svc = SaleCommitService(local_store, local_store)
    svc.commit(business_id=ids.business, created_by=ids.owner, lines=[_line(qty=3)], payment_method="cash")
    assert local_store.get_stock_levels(ids.business, ["p-agua"]) == {"p-agua": 0}

def test_card_without_reference_is_rejected_before_any_write():
    sales, products = MagicMock(), MagicMock()
    svc = SaleCommitService(sales, products)
    with pytest.raises(MissingReference):
        svc.commit(business_id="biz", created_by="u", lines=[_line()], payment_method="card", reference="  ")
    sales.insert_sale.assert_not_called()
    products.update_stock.assert_not_called()

def test_reference_is_stored_as_note(local_store, ids):
    svc = SaleCommitService(local_store, local_store)
    result = svc.commit(business_id=ids.business, created_by=ids.owner, lines=[_line()],
                        payment_method="card", reference="ABC123")
    assert local_store.get_sale(result.sale.id, ids.business).note == "Ref: ABC123"

def test_empty_cart_and_non_positive_total():
    svc = SaleCommitService(MagicMock(), MagicMock())
    with pytest.raises(EmptyCart):
        svc.commit(business_id="biz", created_by="u", lines=[], payment_method="cash")
    with pytest.raises(InvalidTotal):
        svc.commit(business_id="biz", created_by="u", lines=[_line(price="10", qty=1)],
                   payment_method="cash", discount=10)

def test_header_failure_propagates_and_touches_nothing_else():
    sales, products = MagicMock(), MagicMock()
    sales.insert_sale.side_effect = PersistenceError("down")
    svc = SaleCommitService(sales, products)
    with pytest.raises(PersistenceError):
        svc.commit(business_id="biz", created_by="u", lines=[_line()], payment_method="cash")
    sales.insert_sale_items.assert_not_called()
    products.get_stock_levels.assert_not_called()

def test_items_failure_still_reports_committed_sale_and_reconciles_stock(caplog):
    sales, products = MagicMock(), MagicMock()
    sales.insert_sale.return_value = Sale.from_row(_sale_row(), items=[])
    sales.insert_sale_items.side_effect = PersistenceError("items down")
    products.get_stock_levels.return_value = {"p-agua": 10}
    svc = SaleCommitService(sales, products)

    with caplog.at_level(logging.ERROR, logger="caja.sales.service"):
        result = svc.commit(business_id="biz", created_by="u", lines=[_line()], payment_method="cash")

    assert result.sale.id == "5e1a2b3c-aaaa-4000-8000-000000000001"
    assert result.items_error is not None
    assert result.stock_reconciled
    assert not result.complete
    products.update_stock.assert_called_once_with("biz", "p-agua", 8)
    assert "5e1a2b3c-aaaa-4000-8000-000000000001" in caplog.text

def test_partial_stock_failure_is_flagged_per_product():
    sales, products = MagicMock(), MagicMock()
    sales.insert_sale.return_value = Sale.from_row(_sale_row(), items=[])
    products.get_stock_levels.return_value = {"p-agua": 10, "p-taco": 4}

    def _update(business_id, product_id, qty):
        if product_id == "p-agua":
            raise PersistenceError("timeout")

    products.update_stock.side_effect = _update
    svc = SaleCommitService(sales, products)
    result = svc.commit(
        business_id="biz",
        created_by="u",
        lines=[_line(), _line("p-taco", "Taco", "35.50", 1), _line("p-gone", "Borrado", "5", 1)],
        payment_method="cash",
    )
    assert result.items_error is None
    assert set(result.unreconciled_product_ids) == {"p-agua", "p-gone"}
    products.update_stock.assert_any_call("biz", "p-taco", 3)

def test_stock_read_failure_leaves_all_products_unreconciled():
    sales, products = MagicMock(), MagicMock()
    sales.insert_sale.return_value = Sale.from_row(_sale_row(), items=[])
    products.get_stock_levels.side_effect = PersistenceError("down")
    result = SaleCommitService(sales, products).commit(
        business_id="biz", created_by="u", lines=[_line()], payment_method="cash"
    )
    assert result.unreconciled_product_ids == ("p-agua",)
    products.update_stock.assert_not_called()
