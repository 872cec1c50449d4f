"""
Run the MathMentor HTTP service with uvicorn.

Usage:
    python -m mathmentor.server
    HOST=0.0.0.0 PORT=8080 LOG_LEVEL=DEBUG python -m mathmentor.server
"""

import os

import uvicorn

from mathmentor.app import create_app
from mathmentor.config import configure_logging, load_settings
from tutoring_toolkit.session.connectivity import http_probe


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings, connectivity_probe=http_probe)
    uvicorn.run(
        app,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
