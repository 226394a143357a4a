"""Run the API with ``python -m babysync``."""
from __future__ import annotations

import logging

import uvicorn

from .config import CONFIG


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger(__name__).info("BabySync server starting on %s:%s (ws path /ws)", CONFIG.host, CONFIG.port)
    uvicorn.run("babysync.main:app", host=CONFIG.host, port=CONFIG.port)


if __name__ == "__main__":
    main()
