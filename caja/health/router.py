from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from caja.health.service import store_health_info
from caja.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/store")
def health_store(request: Request):
    return JSONResponse(store_health_info(request.app.state.stores))

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
