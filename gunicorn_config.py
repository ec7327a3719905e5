"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
Webhook requests are short and independent; sync workers with a few threads are enough.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = 30
accesslog = "-"
