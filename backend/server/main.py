"""
Development entry point.

    python backend/server/main.py

Production runs server.asgi:app under uvicorn directly.
"""

from __future__ import annotations

import os
from pathlib import Path

import uvicorn


if __name__ == "__main__":
    backend_dir = str(Path(__file__).resolve().parent.parent)

    uvicorn.run(
        "server.asgi:app",
        app_dir=backend_dir,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        reload=True,  # Dev mode only
        reload_dirs=[backend_dir],
    )
