# Gunicorn configuration for local and VM deployment
# Usage: gunicorn -c gunicorn.conf.py app:app

# Server socket
bind = "0.0.0.0:8000"
backlog = 2048

# Worker processes
# A single process owns the generation lock; threads serve concurrent reads
workers = 1
worker_class = "gthread"
threads = 8
max_requests = 2000
max_requests_jitter = 100

# Timeouts
# Streamed generations can run for minutes
timeout = 300
keepalive = 2
graceful_timeout = 30

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Process naming
proc_name = 'strata'

# Server mechanics
daemon = False
pidfile = '/tmp/strata.pid'

preload_app = True

# Environment variables
raw_env = [
    'REDIS_URL=redis://localhost:6379/0',
    'STORE_BACKEND=redis',
]
