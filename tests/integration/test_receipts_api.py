def _sell(client, method="cash", reference=None, with_ticket=True):
    client.post("/api/v1/pos/cart/items", json={"product_id": "p-agua"})
    client.post("/api/v1/pos/checkout", json={"payment_method": method})
    if reference:
        client.post("/api/v1/pos/checkout/reference", json={"reference": reference})
    return client.post("/api/v1/pos/checkout/ticket", json={"with_ticket": with_ticket}).json()["outcome"]


def test_public_receipt_json(client, anon_client):
    outcome = _sell(client, method="transfer", reference="SPEI-0042")
    token = outcome["receipt"]["token"]

    r = anon_client.get(f"/api/v1/receipts/{token}")
    assert r.status_code == 200
    body = r.json()
    assert body["business"] == {
        "name": "Tacos Don Pepe",
        "handle": "donpepe",
        "category": "Restaurante",
        "logo_url": None,
        "currency": "MXN",
    }
    assert body["folio"] == outcome["sale"]["folio"]
    assert body["payment_label"] == "Transferencia"
    assert body["reference"] == "SPEI-0042"
    assert body["items"] == [{"name": "Agua fresca", "quantity": 1, "unit_price": 20.0, "line_total": 20.0}]
    assert "business_id" not in body


def test_unknown_token_reveals_nothing(anon_client):
    r = anon_client.get("/api/v1/receipts/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"detail": "Recibo no disponible", "code": "invalid_token"}


def test_issue_receipt_after_sale(client):
    outcome = _sell(client, with_ticket=False)
    r = client.post("/api/v1/receipts", json={"sale_id": outcome["sale"]["id"]})
    assert r.status_code == 200
    body = r.json()
    assert body["qr_code"].startswith("data:image/png;base64,")
    assert body["url"].endswith(f"/recibo?t={body['token']}")


def test_issue_receipt_for_foreign_sale_404(client):
    assert client.post("/api/v1/receipts", json={"sale_id": "not-mine"}).status_code == 404


def test_receipt_page_html(client, anon_client):
    token = _sell(client)["receipt"]["token"]
    r = anon_client.get("/recibo", params={"t": token})
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert "Tacos Don Pepe" in r.text
    assert "Agua fresca" in r.text
    assert "data:image/png;base64," in r.text


def test_receipt_page_unknown_token(anon_client):
    r = anon_client.get("/recibo", params={"t": "nope"})
    assert r.status_code == 404
    assert "Recibo no disponible" in r.text
    assert anon_client.get("/recibo").status_code == 404
