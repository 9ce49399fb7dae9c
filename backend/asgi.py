"""
ASGI entrypoint: expose `app` pour les process managers (ex: uvicorn backend.asgi:app).
"""

from backend.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "backend.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
