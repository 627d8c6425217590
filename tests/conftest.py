import os

# Désactive l'init fastapi-limiter (évite toute connexion Redis pendant les tests)
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"

import pytest
from typing import Generator
from fastapi.testclient import TestClient

from caja.app_setup.factory import create_app
from caja.infra.local_store import LocalStore

BUSINESS_ID = "b1f0c6de-0000-4000-8000-000000000001"
OWNER_ID = "7f3a9c2e-1111-4000-8000-00000000000a"
OWNER_TOKEN = "tok-owner"
CASHIER_ID = "c4a5b6d7-2222-4000-8000-00000000000b"
CASHIER_TOKEN = "tok-cashier"
STRANGER_TOKEN = "tok-stranger"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


def seed_store(store: LocalStore) -> LocalStore:
    """Commerce de démonstration: un propriétaire, un caissier sans commerce, trois produits actifs."""
    store.add_business(
        id=BUSINESS_ID,
        name="Tacos Don Pepe",
        handle="donpepe",
        category="Restaurante",
        owner_id=OWNER_ID,
        currency="MXN",
        timezone="America/Mexico_City",
        created_at="2024-01-01T00:00:00+00:00",
    )
    store.add_user(id=OWNER_ID, email="pepe@example.com", full_name="Pepe", token=OWNER_TOKEN)
    store.add_user(id=CASHIER_ID, email="ana@example.com", full_name="Ana", token=CASHIER_TOKEN)
    store.add_user(id="u-stranger", email="x@example.com", token=STRANGER_TOKEN)
    store.add_product(id="p-agua", business_id=BUSINESS_ID, name="Agua fresca", sku="AG-01",
                      barcode="7501000000011", price=20, stock=10)
    store.add_product(id="p-taco", business_id=BUSINESS_ID, name="Taco al pastor", sku="TP-02",
                      barcode="7501000000028", price=35.5, stock=1)
    store.add_product(id="p-refresco", business_id=BUSINESS_ID, name="Refresco", sku="RF-03",
                      price=18, stock=0)
    store.add_product(id="p-old", business_id=BUSINESS_ID, name="Producto retirado", price=10, stock=5,
                      is_active=False)
    return store


@pytest.fixture()
def local_store() -> LocalStore:
    return seed_store(LocalStore())


@pytest.fixture()
def stores(local_store):
    return local_store.as_stores()


@pytest.fixture()
def app(stores):
    return create_app(stores=stores)


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {OWNER_TOKEN}"})
        yield c


@pytest.fixture()
def anon_client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def ids():
    """Identifiants du jeu de données de démonstration."""
    from types import SimpleNamespace
    return SimpleNamespace(
        business=BUSINESS_ID,
        owner=OWNER_ID,
        owner_token=OWNER_TOKEN,
        cashier=CASHIER_ID,
        cashier_token=CASHIER_TOKEN,
        stranger_token=STRANGER_TOKEN,
    )
