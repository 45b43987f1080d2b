from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import uvicorn

from .config import load_config
from .dashboard import collect_all
from .server import create_app

def main() -> None:
    ap = argparse.ArgumentParser(prog="deskboard")
    ap.add_argument("--config", help="Path to config.yaml (defaults and environment only when omitted)")
    ap.add_argument("--host", help="Override server.host from config")
    ap.add_argument("--port", type=int, help="Override server.port from config")
    ap.add_argument("--log-level", help="Override logging.level from config")
    ap.add_argument("--once", action="store_true", help="Fetch every widget once, print JSON and exit")
    args = ap.parse_args()

    cfg = load_config(args.config)
    level = (args.log_level or cfg.log_level).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.once:
        dash = asyncio.run(collect_all(cfg))
        json.dump(dash.as_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")
        return

    app = create_app(cfg)
    uvicorn.run(app, host=args.host or cfg.host, port=args.port or cfg.port, log_level=level.lower())
