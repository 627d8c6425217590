"""
Registre central des routers.
- API v1: pos (catalogue/panier/checkout), sales, reports, receipts
- Web: page publique du reçu
- Health
"""
from fastapi import FastAPI
from caja.checkout.views import router as pos_router
from caja.sales.views import router as sales_router
from caja.reports.views import router as reports_router
from caja.receipts.views import router as receipts_router, web_router as receipts_web_router
from caja.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(pos_router)
    app.include_router(sales_router)
    app.include_router(reports_router)
    app.include_router(receipts_router)
    # Pages web (HTML)
    app.include_router(receipts_web_router)
    # Health & monitoring
    app.include_router(health_router)
