#!/usr/bin/env python
"""
Server Entry Point

Starts the shop analytics API.
Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn shop_analytics.main:app -c gunicorn.conf.py

Load demo data first with scripts/seed_database.py.
"""

import argparse
import os
import subprocess

import uvicorn

from shop_analytics.config import get_settings


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        "shop_analytics.main:app",
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["shop_analytics"],
        log_level="debug",
    )


def run_prod_server(port: int):
    """
    Run with Uvicorn directly.

    Single worker: the in-memory cache and the real-time broadcaster live
    in-process. Use --gunicorn with the redis cache backend to scale out.
    """
    settings = get_settings()
    uvicorn.run(
        "shop_analytics.main:app",
        host=settings.api_host,
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info"),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(port: int):
    """Run with Gunicorn."""
    env = dict(os.environ, BIND=f"0.0.0.0:{port}")
    subprocess.run(["gunicorn", "shop_analytics.main:app", "-c", "gunicorn.conf.py"], env=env, check=True)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Shop Analytics API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn (production)")
    parser.add_argument("--port", type=int, default=None, help="Port to run on (default: API_PORT or 8000)")
    args = parser.parse_args()

    port = args.port or get_settings().api_port

    if args.dev:
        print("Starting development server...")
        run_dev_server(port)
    elif args.gunicorn:
        print("Starting production server with Gunicorn...")
        run_gunicorn(port)
    else:
        print("Starting production server with Uvicorn...")
        run_prod_server(port)
