bind = "127.0.0.1:8000"
# Device storage and the write queue are process-local.
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
