from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict
from caja.infra.rows import normalize_row


class ReceiptLink(BaseModel):
    """Association append-only token -> vente."""
    model_config = ConfigDict(frozen=True)

    token: str
    sale_id: str
    business_id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ReceiptLink":
        data = normalize_row(row)
        return cls(
            token=str(data.get("token")),
            sale_id=str(data.get("sale_id")),
            business_id=str(data.get("business_id")),
            created_by=data.get("created_by") or None,
            created_at=data.get("created_at") or None,
        )
