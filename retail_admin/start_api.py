#!/usr/bin/env python3
"""
Convenience script to start the FastAPI gateway.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Load environment variables
project_root = Path(__file__).parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)
    logger.info("Loaded env file: %s", env_path)
else:
    logger.info("Env file not found (optional): %s", env_path)


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("API_RELOAD", "false").lower() in ("1", "true", "yes")
    logger.info("Starting API server on port %s...", port)
    uvicorn.run("retail_admin.api.app:app", host="0.0.0.0", port=port, reload=reload)


if __name__ == "__main__":
    main()
