#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves bookati.main:app with uvicorn on API_HOST / API_PORT.
"""
import os
from pathlib import Path

import uvicorn

from bookati.core.config import settings


def main() -> None:
    os.chdir(Path(__file__).parent)
    uvicorn.run(
        "bookati.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
