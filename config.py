"""
Configuration for the subscription payment webhooks Flask app.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or DB_* fallback.
"""
import os
from urllib.parse import quote_plus


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri():
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or DB_*."""
    if _is_production():
        url = os.environ.get("DATABASE_URL")
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url.strip())

    url = os.environ.get("DATABASE_URL")
    if url and url.strip():
        return _normalize_database_url(url.strip())

    host = os.environ.get("DB_HOST", "localhost")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "payments")
    user = os.environ.get("DB_USER", "payments")
    password = os.environ.get("DB_PASSWORD", "")
    if password:
        password = quote_plus(password)
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def _split_list(value):
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = os.environ.get("MAIL_USE_TLS", "true").lower() in ("true", "on", "1")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@payments.local"
    # Operators who receive reconciliation alerts
    ALERT_EMAILS = _split_list(os.environ.get("ALERT_EMAILS"))

    # Paystack: API key for server-side verification, shared secret for webhook signatures.
    # Webhooks are accepted unsigned when PAYSTACK_WEBHOOK_SECRET is empty.
    PAYSTACK_API_URL = (os.environ.get("PAYSTACK_API_URL") or "https://api.paystack.co").rstrip("/")
    PAYSTACK_SECRET_KEY = (os.environ.get("PAYSTACK_SECRET_KEY") or "").strip()
    PAYSTACK_WEBHOOK_SECRET = (os.environ.get("PAYSTACK_WEBHOOK_SECRET") or "").strip()
    PAYSTACK_VERIFY_TIMEOUT = float(os.environ.get("PAYSTACK_VERIFY_TIMEOUT") or 10)

    MOBILE_APP_SCHEME = os.environ.get("MOBILE_APP_SCHEME") or "myapp://"
    SUBSCRIPTION_PERIOD_DAYS = 30
