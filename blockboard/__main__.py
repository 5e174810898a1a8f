"""
Run the API with uvicorn: ``python -m blockboard``.
"""

from __future__ import annotations

import logging

import uvicorn

from blockboard.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    logger.info("API running on port %s", settings.port)
    uvicorn.run("blockboard.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
