# backend/gunicorn_conf.py

# Gunicorn config file. Run with:
#   gunicorn -c gunicorn_conf.py djula.main:app

import os

# Turns for one customer are serialized per process, so run a single worker
# unless inbound traffic is partitioned by customer upstream.
bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30

# Behind a reverse proxy like Nginx
forwarded_allow_ips = "*"

# --- Logging ---
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
