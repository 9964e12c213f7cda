import base64
import hashlib
import hmac
import logging
import os
import secrets
from functools import wraps

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from flask import current_app, jsonify, request
from flask_login import UserMixin
from werkzeug.security import check_password_hash

from .errors import Unauthorized
from .extensions import db, login_manager
from .models import LoginSession

logger = logging.getLogger(__name__)

SALT_HEADER = b"Salted__"


class LoginUser(UserMixin):
    """Flask-Login identity; ``id`` is the server-side session token."""

    def __init__(self, email, token):
        self.id = token
        self.email = email

    def to_dict(self):
        return {"email": self.email}


def _allowed_emails():
    return {email.lower() for email in current_app.config.get("LOGIN_USERS", [])}


@login_manager.user_loader
def load_user(user_id):
    login_session = db.session.get(LoginSession, user_id) if user_id else None
    if login_session is None or login_session.email.lower() not in _allowed_emails():
        return None
    return LoginUser(login_session.email, login_session.token)


def start_session(email):
    login_session = LoginSession(token=secrets.token_urlsafe(32), email=email)
    db.session.add(login_session)
    db.session.commit()
    return LoginUser(email, login_session.token)


def end_session(token):
    deleted = LoginSession.query.filter_by(token=token).delete()
    db.session.commit()
    return deleted > 0


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def _evp_bytes_to_key(passphrase, salt, key_len=32, iv_len=16):
    # OpenSSL EVP_BytesToKey with MD5, as used by CryptoJS passphrase mode.
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len : key_len + iv_len]


def encrypt_password(plaintext, secret, salt=None):
    salt = salt or os.urandom(8)
    key, iv = _evp_bytes_to_key(secret.encode("utf-8"), salt)
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    data = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(SALT_HEADER + salt + data).decode("ascii")


def decrypt_password(ciphertext, secret):
    raw = base64.b64decode(ciphertext, validate=True)
    if not raw.startswith(SALT_HEADER) or len(raw) < 32:
        raise ValueError("ciphertext is not in salted format")

    salt, data = raw[8:16], raw[16:]
    key, iv = _evp_bytes_to_key(secret.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")


def authenticate(email, password):
    email = (email or "").strip()
    if not email or not password:
        raise Unauthorized("Email and password are required")
    if email.lower() not in _allowed_emails():
        logger.warning("Login rejected for unknown email %s", email)
        raise Unauthorized("Invalid email or password")

    secret = current_app.config.get("ENCRYPTION_SECRET")
    if secret:
        try:
            password = decrypt_password(password, secret)
        except ValueError:
            logger.warning("Login rejected for %s: password decryption failed", email)
            raise Unauthorized("Invalid email or password") from None

    password_hash = current_app.config.get("SHARED_USER_PASSWORD_HASH")
    if not password_hash or not check_password_hash(password_hash, password):
        logger.warning("Login rejected for %s: wrong password", email)
        raise Unauthorized("Invalid email or password")

    return email


def require_api_token(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("EMAIL_API_TOKEN")
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if (
            not expected
            or scheme.lower() != "bearer"
            or not hmac.compare_digest(token.strip().encode(), expected.encode())
        ):
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function
