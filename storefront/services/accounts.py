"""User accounts: signup, login and lookup."""

import logging
from typing import Any, Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.core.errors import AuthenticationError, DuplicateEmailError
from storefront.db.models.user import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: Any) -> Optional[User]:
        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        return self.db.get(User, key)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.scalar(select(User).where(User.email == email.lower()))

    def create(self, email: str, password: str) -> User:
        if self.get_by_email(email) is not None:
            raise DuplicateEmailError("E-Mail exists already, please pick a different one.")

        user = User(email=email.lower(), password_hash=hash_password(password))
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Created user account", extra={"user_id": user.id})
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password.")
        return user
