import pytest
from werkzeug.security import generate_password_hash

from config import Config
from mailroom import create_app
from mailroom.auth import encrypt_password
from mailroom.extensions import db

LOGIN_EMAIL = "admin@example.com"
LOGIN_PASSWORD = "correct horse"
CLIENT_SECRET = "shared-client-secret"
API_TOKEN = "machine-token"


class FakeTransport:
    def __init__(self):
        self.calls = []
        self.fail_for = set()

    def __call__(self, to, subject, html, attachments=(), from_name=None, reply_to=None):
        recipients = [to] if isinstance(to, str) else list(to)
        if self.fail_for.intersection(recipients):
            raise RuntimeError(f"550 mailbox unavailable: {', '.join(recipients)}")
        self.calls.append(
            {
                "to": to,
                "subject": subject,
                "html": html,
                "attachments": list(attachments),
                "from_name": from_name,
                "reply_to": reply_to,
            }
        )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def app(tmp_path, transport):
    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test-secret"
        SQLALCHEMY_DATABASE_URI = "sqlite://"
        SQLALCHEMY_ENGINE_OPTIONS = {}
        ATTACHMENTS_FOLDER = str(tmp_path / "attachments")
        LOGIN_USERS = [LOGIN_EMAIL]
        SHARED_USER_PASSWORD_HASH = generate_password_hash(
            LOGIN_PASSWORD, method="pbkdf2:sha256"
        )
        ENCRYPTION_SECRET = CLIENT_SECRET
        EMAIL_API_TOKEN = API_TOKEN
        MAIL_TRANSPORT = transport

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    response = client.post(
        "/api/login",
        json={
            "email": LOGIN_EMAIL,
            "password": encrypt_password(LOGIN_PASSWORD, CLIENT_SECRET),
        },
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def attachments_dir(app):
    return app.config["ATTACHMENTS_FOLDER"]
