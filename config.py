import os

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv()


def _split_list(value):
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or (
        f"sqlite:///{os.path.join(basedir, 'instance', 'app.db')}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    ATTACHMENTS_FOLDER = os.environ.get("ATTACHMENTS_FOLDER") or os.path.join(
        basedir, "attachments"
    )
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024
    PORT = int(os.environ.get("PORT", "5000"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    SMTP_HOST = os.environ.get("SMTP_HOST", "")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASS = os.environ.get("SMTP_PASS", "")
    SMTP_USE_TLS = os.environ.get("SMTP_USE_TLS", "true")
    SMTP_FROM = os.environ.get("SMTP_FROM", "")
    SMTP_FROM_NAME = os.environ.get("SMTP_FROM_NAME", "Road")
    MAIL_TRANSPORT = None

    ENCRYPTION_SECRET = os.environ.get("ENCRYPTION_SECRET", "")
    SHARED_USER_PASSWORD_HASH = os.environ.get("SHARED_USER_PASSWORD_HASH", "")
    LOGIN_USERS = _split_list(os.environ.get("LOGIN_USERS"))
    CORS_ORIGINS = _split_list(os.environ.get("CORS_ORIGINS")) or [
        "http://localhost:5173"
    ]
    EMAIL_API_TOKEN = os.environ.get("EMAIL_API_TOKEN", "")
