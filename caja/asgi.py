"""
Instance ASGI du service de caisse: `caja.asgi:app` (uvicorn, gunicorn + UvicornWorker).
Le backend de store (supabase/local) est choisi par STORE_BACKEND au chargement du module.
"""
from caja.app_setup.factory import create_app

app = create_app()
