# backoffice_api/extensions.py
import os
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

SERVER_POOL_OPTIONS = {
    "pool_pre_ping": True,
    "pool_recycle": 270,
    "pool_size": 5,
    "max_overflow": 2,
    "pool_timeout": 30,
}

def utcnow() -> datetime:
    """Naive UTC timestamp for the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# seconds a sqlite writer waits on a locked database before giving up
SQLITE_BUSY_TIMEOUT = 15


def normalize_db_url(url: str) -> str:
    """postgres:// and postgresql:// -> postgresql+psycopg:// (psycopg 3 driver)."""
    if not url:
        return url
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # concurrent payroll writers queue on the file lock instead of failing at once
        return {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT}}
    return dict(SERVER_POOL_OPTIONS)


def init_db(app):
    url = os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    url = normalize_db_url(url)
    app.config["SQLALCHEMY_DATABASE_URI"] = url
    app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", engine_options(url))
    db.init_app(app)
