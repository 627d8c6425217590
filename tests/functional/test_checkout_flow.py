"""
Parcours complet d'une journée de caisse: deux terminaux, plusieurs cobros,
puis vérification croisée du stock, des reçus et du rapport.
"""
from datetime import datetime
from zoneinfo import ZoneInfo
from fastapi.testclient import TestClient


def _sell(client, products, method, reference=None, with_ticket=False, discount=0, terminal="default"):
    headers = {"X-Terminal-Id": terminal}
    for pid in products:
        r = client.post("/api/v1/pos/cart/items", json={"product_id": pid}, headers=headers)
        assert r.status_code == 200, r.text
    r = client.post("/api/v1/pos/checkout", json={"payment_method": method, "discount": discount}, headers=headers)
    assert r.status_code == 200, r.text
    if reference is not None:
        client.post("/api/v1/pos/checkout/reference", json={"reference": reference}, headers=headers)
    r = client.post("/api/v1/pos/checkout/ticket", json={"with_ticket": with_ticket}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["outcome"]


def test_full_day_of_sales(client, local_store, ids):
    first = _sell(client, ["p-agua", "p-agua", "p-agua"], "efectivo", with_ticket=True, terminal="caja-1")
    second = _sell(client, ["p-taco", "p-agua"], "tarjeta", reference="VISA-1234", discount=5.5, terminal="caja-2")
    third = _sell(client, ["p-agua"], "transferencia", reference="SPEI-1", with_ticket=True, terminal="caja-1")

    assert first["sale"]["total"] == 60.0
    assert second["sale"]["subtotal"] == 55.5
    assert second["sale"]["total"] == 50.0
    assert third["sale"]["payment_method"] == "transfer"

    # Stock réconcilié: 10 - 3 - 1 - 1 = 5 agua, taco épuisé
    assert local_store.get_stock_levels(ids.business, ["p-agua", "p-taco"]) == {"p-agua": 5, "p-taco": 0}

    # Le catalogue rechargé bloque un taco de plus
    r = client.post("/api/v1/pos/cart/items", json={"product_id": "p-taco"}, headers={"X-Terminal-Id": "caja-2"})
    assert r.status_code == 409
    assert r.json()["code"] == "out_of_stock"

    # Reçus publics, sans session
    with TestClient(client.app) as public:
        receipt = public.get(f"/api/v1/receipts/{first['receipt']['token']}").json()
        assert receipt["total"] == 60.0
        assert receipt["items"][0]["quantity"] == 3
        assert receipt["reference"] is None
        page = public.get("/recibo", params={"t": third["receipt"]["token"]})
        assert page.status_code == 200
        assert "SPEI-1" in page.text

    # Rapport du jour (fuseau du commerce)
    today = datetime.now(ZoneInfo("America/Mexico_City")).date().isoformat()
    report = client.get("/api/v1/reports/sales", params={"from": today, "to": today}).json()
    assert report["kpis"]["income"] == 130.0
    assert report["kpis"]["sales_count"] == 3
    assert {m["method"]: m["total"] for m in report["methods"]} == {"cash": 60.0, "card": 50.0, "transfer": 20.0}
    assert report["top_products"][0] == {"name": "Agua fresca", "quantity": 5}
    assert report["employees"][0]["label"] == "Pepe"
    assert report["employees"][0]["sales"] == 3

    recent = client.get("/api/v1/sales/recent").json()
    assert [s["id"] for s in recent] == [third["sale"]["id"], second["sale"]["id"], first["sale"]["id"]]
    assert all(s["day"] == "hoy" for s in recent)
