"""RepVoice: Launch script."""

import logging
import os

import uvicorn

# Load .env before any other imports read os.environ
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))

from backend.config import HOST, PORT

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("REPVOICE_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    uvicorn.run(
        "backend.main:app",
        host=HOST,
        port=PORT,
        reload=os.environ.get("REPVOICE_RELOAD", "") == "1",
        reload_dirs=[os.path.dirname(__file__)],
    )
