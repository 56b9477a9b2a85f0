"""Gunicorn configuration for the booking API (gunicorn -c gunicorn.conf.py wsgi:application)."""

import os

# Server socket
bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

# Booking writes serialize on SQLite's write lock; extra workers only add
# contention, so scale with threads instead.
workers = int(os.environ.get('GUNICORN_WORKERS', 2))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = 'gthread'

# Requests never wait longer than the DB busy timeout plus retries
timeout = 30
graceful_timeout = 30
keepalive = 5

# Logging (same directory as the application log)
_log_dir = os.environ.get('LOG_DIR', 'logs')
accesslog = os.path.join(_log_dir, 'gunicorn-access.log')
errorlog = os.path.join(_log_dir, 'gunicorn-error.log')
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(u)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

proc_name = 'traydry'
preload_app = True

max_requests = 1000
max_requests_jitter = 50


def on_starting(server):
    os.makedirs(_log_dir, exist_ok=True)
