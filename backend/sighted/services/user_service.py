"""
SightEd Backend — User Accounts Service
=========================================

What:  Email/password registration and login backed by the `users` collection.
How:   Passwords are hashed with bcrypt through passlib's CryptContext; the
       stored document holds only `password_hash` and no response ever
       includes it. Emails are trimmed and lower-cased before storage and
       lookup, so "Ada@Example.com " and "ada@example.com" are one account.
       A user's document id is derived from the normalized email, so the
       store's create-if-absent insert is what enforces one account per email.

Login returns the same AuthenticationError for an unknown email and for a
wrong password.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from sighted.exceptions import AuthenticationError, ConflictError, ValidationError
from sighted.storage.base import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"
MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def user_id_for(email: str) -> str:
    """Stable document id for a normalized email."""
    return uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email}").hex


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """The subset of a user document that may leave the server."""
    return {
        "id": user["id"],
        "email": user.get("email", ""),
        "firstName": user.get("firstName", ""),
        "lastName": user.get("lastName", ""),
    }


class UserService:

    async def register(
        self,
        store: DocumentStore,
        email: Optional[str],
        password: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Dict[str, Any]:
        """
        Creates an account.

        Raises:
            ValidationError: Missing field, malformed email, short password (→ 400)
            ConflictError: Email already registered (→ 409)
        """
        if not all(value and value.strip() for value in (email, password, first_name, last_name)):
            raise ValidationError(
                message="Missing required fields",
                context={"required": ["email", "password", "firstName", "lastName"]},
            )

        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError(message="Invalid email format", field="email")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        user_id = user_id_for(email)
        if await store.get(USERS, user_id):
            raise ConflictError(message="User already exists", context={"field": "email"})

        password_hash = await run_in_threadpool(pwd_context.hash, password)
        now = datetime.now(timezone.utc).isoformat()
        try:
            await store.create(USERS, user_id, {
                "email": email,
                "password_hash": password_hash,
                "firstName": first_name.strip(),
                "lastName": last_name.strip(),
                "createdAt": now,
                "updatedAt": now,
            })
        except ConflictError as e:
            # Lost a race with a concurrent registration for the same email
            raise ConflictError(
                message="User already exists", context={"field": "email"}
            ) from e
        logger.info("User registered with ID: %s", user_id)

        return {
            "success": True,
            "message": "User registered successfully",
            "user": {
                "id": user_id,
                "email": email,
                "firstName": first_name.strip(),
                "lastName": last_name.strip(),
            },
        }

    async def login(
        self,
        store: DocumentStore,
        email: Optional[str],
        password: Optional[str],
    ) -> Dict[str, Any]:
        """
        Checks credentials.

        Raises:
            ValidationError: Missing email or password (→ 400)
            AuthenticationError: Unknown email or wrong password (→ 401)
        """
        if not email or not email.strip() or not password:
            raise ValidationError(
                message="Missing required fields",
                context={"required": ["email", "password"]},
            )

        user = await store.get(USERS, user_id_for(normalize_email(email)))
        if user is None:
            raise AuthenticationError()

        password_hash = user.get("password_hash")
        if not password_hash or not await run_in_threadpool(
            pwd_context.verify, password, password_hash
        ):
            logger.info("Failed login for user %s", user["id"])
            raise AuthenticationError()

        logger.info("User %s logged in", user["id"])
        return {"success": True, "message": "Login successful", "user": public_user(user)}


user_service = UserService()
