import os

# Server Socket
bind = os.environ.get("GUNICORN_BIND", "127.0.0.1:8000")  # NGINX proxies requests

wsgi_app = "app:app"

# Worker Settings
# Scanners at several gates hit /check-in/verify at once; the conditional
# UPDATE keeps admissions exact across workers. Duplicate-scan suppression
# is per worker; set GUNICORN_WORKERS=1 to make the 202 window exact.
workers = int(os.environ.get("GUNICORN_WORKERS", 4))
threads = 2
worker_class = "gthread"

timeout = 60
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 50

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Process Name
proc_name = "ingress_gunicorn"
