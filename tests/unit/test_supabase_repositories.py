import pytest
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock
from postgrest.exceptions import APIError
from caja.auth.repository import SupabaseIdentityStore
from caja.config import DEFAULT_TIMEZONE
from caja.businesses.repository import SupabaseBusinessDirectory
from caja.errors import PersistenceError, TokenCollision
from caja.products.repository import SupabaseProductStore
from caja.receipts.repository import SupabaseReceiptLinkStore
from caja.sales.repository import SupabaseSaleStore

SALE_ROW = {
    "id": "9d2c0f1e-3333-4000-8000-000000000001",
    "business_id": "biz",
    "created_by": "u1",
    "created_at": "2024-06-01T18:00:00.123456+00:00",
    "status": "paid",
    "payment_method": "card",
    "subtotal": 40,
    "discount": 0,
    "tax": 0,
    "total": 40,
    "note": "Ref: ABC123",
}


def _client():
    return MagicMock()


def test_insert_sale_serializes_decimals_and_returns_entity():
    client = _client()
    client.table.return_value.insert.return_value.execute.return_value = SimpleNamespace(data=[SALE_ROW])
    store = SupabaseSaleStore(client_factory=lambda: client)

    sale = store.insert_sale({"business_id": "biz", "subtotal": Decimal("40.00"), "total": Decimal("40.00")})

    client.table.assert_called_once_with("sales")
    payload = client.table.return_value.insert.call_args[0][0]
    assert payload == {"business_id": "biz", "subtotal": 40.0, "total": 40.0}
    assert sale.id == SALE_ROW["id"]
    assert sale.created_at.tzinfo is not None

def test_insert_sale_empty_response_is_persistence_error():
    client = _client()
    client.table.return_value.insert.return_value.execute.return_value = SimpleNamespace(data=[])
    with pytest.raises(PersistenceError):
        SupabaseSaleStore(client_factory=lambda: client).insert_sale({"business_id": "biz"})

def test_insert_sale_network_error_is_persistence_error():
    client = _client()
    client.table.side_effect = ConnectionError("boom")
    with pytest.raises(PersistenceError):
        SupabaseSaleStore(client_factory=lambda: client).insert_sale({"business_id": "biz"})

def test_insert_sale_items_uses_legacy_qty_column():
    client = _client()
    SupabaseSaleStore(client_factory=lambda: client).insert_sale_items([
        {"sale_id": "s1", "product_id": "p1", "name": "Agua", "quantity": 2,
         "unit_price": Decimal("20.00"), "line_total": Decimal("40.00")}
    ])
    client.table.assert_called_once_with("sale_items")
    rows = client.table.return_value.insert.call_args[0][0]
    assert rows == [{"sale_id": "s1", "product_id": "p1", "name": "Agua", "qty": 2,
                     "unit_price": 20.0, "line_total": 40.0, "cost": 0}]

def test_list_sales_filters_window_and_normalizes_items():
    client = _client()
    q = client.table.return_value.select.return_value.eq.return_value.gte.return_value.lt.return_value
    row = dict(SALE_ROW, sale_items=[{"sale_id": SALE_ROW["id"], "product_id": "p1", "name": "Agua",
                                       "qty": 2, "unit_price": 20, "line_total": 40}])
    q.eq.return_value.order.return_value.execute.return_value = SimpleNamespace(data=[row])
    start = datetime(2024, 6, 1, 6, tzinfo=timezone.utc)
    end = datetime(2024, 6, 2, 6, tzinfo=timezone.utc)

    sales = SupabaseSaleStore(client_factory=lambda: client).list_sales("biz", start, end, "card")

    client.table.return_value.select.return_value.eq.assert_called_once_with("business_id", "biz")
    client.table.return_value.select.return_value.eq.return_value.gte.assert_called_once_with(
        "created_at", "2024-06-01T06:00:00+00:00"
    )
    q.eq.assert_called_once_with("payment_method", "card")
    q.eq.return_value.order.assert_called_once_with("created_at", desc=False)
    assert sales[0].items[0].quantity == 2
    assert sales[0].items[0].line_total == Decimal("40.00")

def test_get_stock_levels_reads_legacy_stock_column():
    client = _client()
    chain = client.table.return_value.select.return_value.eq.return_value.in_.return_value
    chain.execute.return_value = SimpleNamespace(data=[{"id": "p1", "stock": 7}, {"id": "p2", "stock": None}])
    levels = SupabaseProductStore(client_factory=lambda: client).get_stock_levels("biz", ["p1", "p2"])
    assert levels == {"p1": 7, "p2": 0}
    client.table.return_value.select.return_value.eq.return_value.in_.assert_called_once_with("id", ["p1", "p2"])

def test_update_stock_never_writes_negative():
    client = _client()
    SupabaseProductStore(client_factory=lambda: client).update_stock("biz", "p1", -3)
    client.table.return_value.update.assert_called_once_with({"stock": 0})

def test_list_active_products_maps_rows():
    client = _client()
    chain = client.table.return_value.select.return_value.eq.return_value.eq.return_value.order.return_value
    chain.execute.return_value = SimpleNamespace(
        data=[{"id": "p1", "business_id": "biz", "name": "Agua", "price": "20.5", "stock": 3, "sku": "AG"}]
    )
    products = SupabaseProductStore(client_factory=lambda: client).list_active_products("biz")
    assert products[0].unit_price == Decimal("20.50")
    assert products[0].stock_on_hand == 3

def test_receipt_link_unique_violation_is_token_collision():
    client = _client()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {"code": "23505", "message": "duplicate key value violates unique constraint"}
    )
    with pytest.raises(TokenCollision):
        SupabaseReceiptLinkStore(client_factory=lambda: client).insert_receipt_link(
            {"token": "t", "sale_id": "s", "business_id": "b"}
        )

def test_receipt_link_other_api_error_is_persistence_error():
    client = _client()
    client.table.return_value.insert.return_value.execute.side_effect = APIError(
        {"code": "42501", "message": "permission denied"}
    )
    with pytest.raises(PersistenceError):
        SupabaseReceiptLinkStore(client_factory=lambda: client).insert_receipt_link(
            {"token": "t", "sale_id": "s", "business_id": "b"}
        )

def test_find_receipt_link_absent():
    client = _client()
    chain = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = SimpleNamespace(data=[])
    assert SupabaseReceiptLinkStore(client_factory=lambda: client).find_receipt_link("nope") is None

def test_business_by_owner_takes_oldest():
    client = _client()
    chain = client.table.return_value.select.return_value.eq.return_value.order.return_value.limit.return_value
    chain.execute.return_value = SimpleNamespace(data=[{"id": "b1", "name": "Tienda", "owner_id": "u1"}])
    business = SupabaseBusinessDirectory(client_factory=lambda: client).get_business_by_owner("u1")
    client.table.return_value.select.return_value.eq.return_value.order.assert_called_once_with("created_at", desc=False)
    assert business.id == "b1"
    assert business.timezone == DEFAULT_TIMEZONE

def test_identity_from_supabase_auth_user_object():
    auth_client = _client()
    auth_client.auth.get_user.return_value = SimpleNamespace(
        user=SimpleNamespace(id="u1", email="pepe@example.com", user_metadata={"full_name": "Pepe"})
    )
    store = SupabaseIdentityStore(auth_client_factory=lambda: auth_client, client_factory=_client)
    assert store.get_user_from_token("jwt") == {"id": "u1", "email": "pepe@example.com", "display_name": "Pepe"}

def test_display_names_from_profiles():
    client = _client()
    chain = client.table.return_value.select.return_value.in_.return_value
    chain.execute.return_value = SimpleNamespace(data=[{"id": "u1", "full_name": "Pepe"}, {"id": "u2", "full_name": None}])
    store = SupabaseIdentityStore(client_factory=lambda: client)
    assert store.get_display_names(["u1", "u2", None]) == {"u1": "Pepe"}
    client.table.assert_called_once_with("profiles")
