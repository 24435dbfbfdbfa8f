# -*- coding: utf-8 -*-

import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
accesslog = "-"
errorlog = "-"
access_log_format = (
    "%(h)s %(l)s %(u)s %(t)s '%(r)s' %(s)s %(b)s '%(f)s' '%(a)s' in %(D)sµs"  # noqa: E501
)

# Capture stdout/stderr from app workers and send it to Gunicorn's errorlog.
capture_output = True

loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Scenario state lives in the worker process, so a second worker would get
# its own registry. Scale with threads instead.
worker_class = os.getenv("WEB_WORKER_CLASS", "gthread")
workers = int(os.getenv("WEB_CONCURRENCY", 1))
threads = int(os.getenv("PYTHON_MAX_THREADS", 16))

reload = os.getenv("WEB_RELOAD", "false").lower() in ("1", "true", "yes", "on")

# Diagnostic endpoints like memspike and probabilisticload run for minutes.
timeout = int(os.getenv("WEB_TIMEOUT", 1800))
