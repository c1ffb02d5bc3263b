from __future__ import annotations

import argparse

import uvicorn

from .api.app import create_app
from .config import configure_logging, get_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the email vault API server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
