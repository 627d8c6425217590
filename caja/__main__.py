"""
Lancement local du service de caisse: `python -m caja`.

Variables lues:
- HOST / PORT: interface et port d'écoute (0.0.0.0:8000)
- UVICORN_RELOAD: "1"/"true"/"yes" pour le rechargement automatique (dev)
- LOG_LEVEL: niveau de logs uvicorn et du paquet caja
"""
import logging
import os
import uvicorn


def _flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def main() -> None:
    log_level = os.environ.get("LOG_LEVEL", "info").lower()
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "caja.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        reload=_flag("UVICORN_RELOAD"),
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
