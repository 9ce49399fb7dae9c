"""
Lancement local de l'API boutique/paiement.

Usage:
    python -m backend

Variables lues:
- PORT: port d'écoute (8000 par défaut)
- UVICORN_RELOAD: reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn et applicatif (ex: "info", "debug")
"""
import logging
import os

import uvicorn

if __name__ == "__main__":
    log_level = os.environ.get("LOG_LEVEL", "info")
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "backend.asgi:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=log_level,
    )
