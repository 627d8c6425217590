from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any
from pydantic import BaseModel
import logging
from caja.errors import PersistenceError
from caja.infra.stores import Stores

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"


class Identity(BaseModel):
    """Contexte d'identité injecté dans chaque opération de caisse."""
    business_id: str
    user_id: str
    display_name: str
    email: Optional[str] = None


def get_stores(request: Request) -> Stores:
    return request.app.state.stores

def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        user = get_stores(request).users.get_user_from_token(token)
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Servicio no disponible")
    except Exception as e:
        # Jeton refusé par Supabase Auth (expiré, révoqué, mal formé)
        logger.warning("Validation du token impossible: %s", e)
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user or not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_identity(request: Request, user: Dict[str, Any] = Depends(require_user)) -> Identity:
    """
    Résout le commerce de l'utilisateur (owner_id, le plus ancien).
    - 403 si l'utilisateur n'a pas de commerce
    - 503 si l'annuaire est indisponible
    """
    try:
        business = get_stores(request).businesses.get_business_by_owner(user["id"])
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Servicio no disponible")
    if business is None:
        raise HTTPException(status_code=403, detail="Accès interdit: aucun commerce associé")
    request.state.business = business
    return Identity(
        business_id=business.id,
        user_id=str(user["id"]),
        display_name=str(user.get("display_name") or user.get("email") or "Usuario"),
        email=user.get("email"),
    )

def require_business(request: Request, identity: Identity = Depends(require_identity)):
    """Commerce de l'identité courante (chargé par require_identity)."""
    return request.state.business
