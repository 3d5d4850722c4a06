"""gunicorn_conf.py

Gunicorn config for RoomRelay (eventlet worker). See wsgi.py for the run line.

Environment variables:
  ROOMRELAY_BIND=0.0.0.0:5000
  ROOMRELAY_WORKERS=1
  ROOMRELAY_GUNICORN_TIMEOUT=60
"""

import os

bind = os.environ.get("ROOMRELAY_BIND", "0.0.0.0:5000")
# Presence is in-process; more workers need a message queue and still split
# the online list per worker.
workers = int(os.environ.get("ROOMRELAY_WORKERS", "1"))
worker_class = "eventlet"
timeout = int(os.environ.get("ROOMRELAY_GUNICORN_TIMEOUT", "60"))
