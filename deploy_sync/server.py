"""Standalone entrypoint for the Deploy Sync webhook service."""

from __future__ import annotations

import logging

import uvicorn

from .app import app
from .config import settings


def main():
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s [%(levelname)s] %(message)s")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":  # pragma: no cover
    main()
