"""
Production Server Configuration

Run the analytics API with Uvicorn workers under Gunicorn.

Each worker owns its own analytics service: with the in-memory cache
backend every worker computes and caches bundles separately, and every
worker runs its own real-time broadcaster. Set ANALYTICS_CACHE_BACKEND=redis
to share cached bundles between workers.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", min(multiprocessing.cpu_count(), 4)))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# WebSocket clients keep connections open between broadcasts
timeout = 120
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "shop-analytics-api"

# Server mechanics
daemon = False
pidfile = os.getenv("PIDFILE", "/tmp/shop-analytics.pid")

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s "%({x-request-id}o)s"'


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("Shop analytics API ready on %s with %s workers", bind, workers)
    if workers > 1 and os.getenv("ANALYTICS_CACHE_BACKEND", "memory") == "memory":
        server.log.warning("In-memory analytics cache is not shared between workers")


def worker_abort(worker):
    """Called when worker receives SIGABRT signal."""
    worker.log.warning("Worker %s aborted (timeout)", worker.pid)
