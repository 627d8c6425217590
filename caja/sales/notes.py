import re
from typing import Optional

REFERENCE_PREFIX = "Ref: "
_REFERENCE_RE = re.compile(r"ref\s*:\s*(.+)$", re.IGNORECASE)


def encode_reference_note(reference: Optional[str]) -> Optional[str]:
    """Référence de paiement conservée dans la note de vente: "Ref: <reference>"."""
    ref = (reference or "").strip()
    return f"{REFERENCE_PREFIX}{ref}" if ref else None


def parse_reference(note: Optional[str]) -> Optional[str]:
    match = _REFERENCE_RE.search(note or "")
    if not match:
        return None
    return match.group(1).strip() or None
