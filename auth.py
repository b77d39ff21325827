"""Admin accounts and bearer-token sessions."""

import hashlib
import hmac
import logging
import os
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header
from pymongo.database import Database

from database import create_document, get_db, utcnow
from errors import AuthenticationError
from schemas import Admin, TokenResponse

logger = logging.getLogger(__name__)

# Password hashing (sha256 + salt).
SECRET_SALT = os.getenv("APP_SECRET", "quiz-admin-salt")
SESSION_DAYS = int(os.getenv("SESSION_DAYS", 7))


def hash_password(password: str) -> str:
    return hashlib.sha256((SECRET_SALT + password).encode()).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password), password_hash)


def create_admin(db: Database, username: str, password: str, email: str) -> str:
    admin = Admin(username=username, email=email, password_hash=hash_password(password))
    return create_document(db, "admin", admin)


def seed_admin_if_needed(db: Database) -> None:
    if db["admin"].count_documents({}) > 0:
        return
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        logger.warning("No admin account exists and ADMIN_PASSWORD is not set; admin login is disabled")
        return
    username = os.getenv("ADMIN_USERNAME", "admin")
    create_admin(db, username, password, os.getenv("ADMIN_EMAIL", "admin@example.com"))
    logger.info("Seeded admin account %r", username)


def login(db: Database, username: str, password: str) -> TokenResponse:
    admin = db["admin"].find_one({"username": username})
    if not admin or not verify_password(password, admin.get("password_hash", "")):
        logger.warning("Failed admin login for %r", username)
        raise AuthenticationError("Invalid username or password")

    token = secrets.token_urlsafe(32)
    db["session"].insert_one({
        "token": token,
        "username": username,
        "created_at": utcnow(),
        "expires_at": utcnow() + timedelta(days=SESSION_DAYS),
    })
    return TokenResponse(token=token, username=username, email=admin["email"], role=admin.get("role", "admin"))


def logout(db: Database, token: Optional[str]) -> None:
    if token:
        db["session"].delete_one({"token": token})


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def require_admin(token: Optional[str] = Depends(bearer_token), db: Database = Depends(get_db)) -> dict:
    if not token:
        raise AuthenticationError("Missing admin token")
    session = db["session"].find_one({"token": token})
    if not session:
        raise AuthenticationError("Invalid admin token")
    if session.get("expires_at") and session["expires_at"] < utcnow():
        db["session"].delete_one({"token": token})
        raise AuthenticationError("Admin session expired")
    admin = db["admin"].find_one({"username": session["username"]})
    if not admin:
        raise AuthenticationError("Invalid admin token")
    return admin
