from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict
from caja.config import DEFAULT_CURRENCY, DEFAULT_TIMEZONE
from caja.infra.rows import normalize_row


class Business(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    handle: Optional[str] = None
    category: Optional[str] = None
    owner_id: Optional[str] = None
    logo_url: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    timezone: str = DEFAULT_TIMEZONE
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Business":
        data = normalize_row(row)
        return cls(
            id=str(data.get("id")),
            name=data.get("name") or "",
            handle=data.get("handle") or None,
            category=data.get("category") or None,
            owner_id=data.get("owner_id") or None,
            logo_url=data.get("logo_url") or None,
            currency=data.get("currency") or DEFAULT_CURRENCY,
            timezone=data.get("timezone") or DEFAULT_TIMEZONE,
            created_at=data.get("created_at") or None,
        )

    def public_attributes(self) -> Dict[str, Any]:
        """Attributs affichables sur un reçu public (aucun identifiant interne)."""
        return {
            "name": self.name,
            "handle": self.handle,
            "category": self.category,
            "logo_url": self.logo_url,
            "currency": self.currency,
        }
