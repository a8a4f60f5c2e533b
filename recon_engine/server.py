#!/usr/bin/env python3
"""
Standalone server entry point for the reconciliation API.

    python -m recon_engine.server --port 8000
"""

import argparse

import uvicorn

from .config import get_settings
from .utils.logging import setup_logging


def main(argv=None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Ledger reconciliation API server")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to run the server on")
    parser.add_argument("--log-level", default=settings.app_log_level, help="Logging level")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, settings.log_file)

    from .main import app

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
