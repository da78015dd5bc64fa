"""Uvicorn entrypoint for the marketplace API."""

from __future__ import annotations

import uvicorn

from homeservices.api.api_config import get_api_config


def run() -> None:
    config = get_api_config()
    uvicorn.run("homeservices.api.app:app", host=config.host, port=config.port)


if __name__ == "__main__":
    run()
