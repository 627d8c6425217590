# caja.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

"""
Configuration centrale du service caja.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs Supabase et le choix du store (supabase/local)
- Paramètres métier: fuseau et devise par défaut, reçus partageables, reporting
- Sécurité HTTP: cookies, CORS/hosts, rate limiting
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Store: "supabase" par défaut si une URL est fournie, sinon mode dégradé local
STORE_BACKEND = _clean_env(os.getenv("STORE_BACKEND") or ("supabase" if SUPABASE_URL else "local")).lower()
LOCAL_STORE_PATH = _clean_env(os.getenv("LOCAL_STORE_PATH") or str(BASE_DIR / "data" / "pos_local.json"))

# Reçus partageables: <BASE_URL><RECEIPT_PATH>?t=<token>
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")
RECEIPT_PATH = _clean_env(os.getenv("RECEIPT_PATH") or "/recibo")
RECEIPT_TOKEN_BYTES = max(16, _int_env("RECEIPT_TOKEN_BYTES", 24))

# Valeurs par défaut d'un commerce sans configuration explicite
DEFAULT_TIMEZONE = _clean_env(os.getenv("DEFAULT_TIMEZONE") or "America/Mexico_City")
DEFAULT_CURRENCY = _clean_env(os.getenv("DEFAULT_CURRENCY") or "MXN")

# Reporting
REPORT_TOP_PRODUCTS = _int_env("REPORT_TOP_PRODUCTS", 7)
REPORT_PROJECTION_WINDOW = _int_env("REPORT_PROJECTION_WINDOW", 14)
REPORT_PROJECTION_HORIZON = _int_env("REPORT_PROJECTION_HORIZON", 30)
REPORT_DEFAULT_RANGE_DAYS = _int_env("REPORT_DEFAULT_RANGE_DAYS", 30)

# Terminaux: une session sans activité depuis TERMINAL_IDLE_TTL secondes est oubliée (panier compris)
TERMINAL_IDLE_TTL = _int_env("TERMINAL_IDLE_TTL", 8 * 60 * 60)

# Cookies / sécurité (LOGIN_PATH: page de connexion servie par le front)
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
LOGIN_PATH = _clean_env(os.getenv("LOGIN_PATH") or "/auth")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Rate limiting (fastapi-limiter sur Redis)
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")
