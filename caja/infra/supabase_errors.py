from typing import Optional
from postgrest.exceptions import APIError

UNIQUE_VIOLATION = "23505"


def api_error_code(exc: Exception) -> Optional[str]:
    """Extrait le code PostgreSQL d'une APIError PostgREST (None si absent)."""
    if not isinstance(exc, APIError):
        return None
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("code")
    return None
