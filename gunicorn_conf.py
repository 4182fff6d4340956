import os

# Gunicorn configuration file
# gunicorn -c gunicorn_conf.py
wsgi_app = "app.main:app"

# Bind to all interfaces on port 8000
bind = "0.0.0.0:8000"

# Socket rooms live in process memory, so a notification only reaches clients
# connected to the same worker. Keep one worker unless rooms move to a broker.
workers = int(os.environ.get("WEB_CONCURRENCY", "1"))
worker_class = "uvicorn.workers.UvicornWorker"

# Timeout and Keepalive
timeout = 120
keepalive = 5

# Logging
accesslog = "-" # Log to stdout
errorlog = "-"  # Log to stderr
loglevel = "info"

# Process management
name = "collab_task_manager_api"
reload = False  # Set to True for development only
