"""
Diagnostics du store (utilisé par /health/store).
- supabase: résolution DNS de l'hôte puis sonde `select * limit 1` par table
- local: chemin du document et nombre de lignes par table
"""
from typing import Any, Dict
from urllib.parse import urlparse
import logging
import socket

from caja.config import SUPABASE_URL
from caja.infra import supabase_client
from caja.infra.stores import Stores

logger = logging.getLogger(__name__)

PROBED_TABLES = ("businesses", "products", "sales", "sale_items", "receipt_links")


def health_supabase_info() -> Dict[str, Any]:
    host = urlparse(SUPABASE_URL).hostname if SUPABASE_URL else None
    info: Dict[str, Any] = {"url_set": bool(SUPABASE_URL), "host": host, "dns_ok": False, "tables": {}}
    if not host:
        return info
    try:
        socket.getaddrinfo(host, 443)
        info["dns_ok"] = True
    except OSError as e:
        info["dns_error"] = str(e)
        return info

    for table in PROBED_TABLES:
        try:
            supabase_client.get_service_supabase().table(table).select("*").limit(1).execute()
            info["tables"][table] = "ok"
        except Exception as e:
            logger.warning("Sonde %s en échec: %s", table, e)
            info["tables"][table] = "error"
    info["connect_ok"] = all(v == "ok" for v in info["tables"].values())
    return info


def store_health_info(stores: Stores) -> Dict[str, Any]:
    if stores.backend == "supabase":
        return {"backend": "supabase", **health_supabase_info()}
    local = stores.products
    return {
        "backend": stores.backend,
        "path": getattr(local, "path", None),
        "tables": local.table_counts() if hasattr(local, "table_counts") else {},
        "connect_ok": True,
    }
