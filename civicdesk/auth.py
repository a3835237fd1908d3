# Accounts, password hashing and bearer tokens

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import (JWT_ALGORITHM, JWT_EXPIRE_HOURS, JWT_SECRET, PASSWORD_HASH_ROUNDS,
                     TOKEN_SCHEME, new_id, now_utc)
from .errors import AuthenticationError, ValidationError
from .models import Role, User
from .store import UserStore

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto",
                           bcrypt__rounds=PASSWORD_HASH_ROUNDS)

# ---------------------------------------------------------------------------
# Password helpers
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password cannot exceed 72 bytes")
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

# ---------------------------------------------------------------------------
# Token schemes
# ---------------------------------------------------------------------------
class Authenticator(ABC):
    """Turns a user id into a bearer token and back."""

    @abstractmethod
    def issue(self, user_id: str) -> str: ...

    @abstractmethod
    def decode(self, token: str) -> str:
        """Return the user id a token stands for, or raise AuthenticationError."""


class DevTokenAuthenticator(Authenticator):
    """Unsigned ``dev-<userId>`` tokens without expiry, as the web client expects."""

    prefix = "dev-"

    def issue(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}"

    def decode(self, token: str) -> str:
        if not token or not token.startswith(self.prefix) or len(token) == len(self.prefix):
            raise AuthenticationError("Invalid token")
        return token[len(self.prefix):]


class JWTAuthenticator(Authenticator):
    def __init__(self, secret: str, algorithm: str = JWT_ALGORITHM,
                 expire_hours: int = JWT_EXPIRE_HOURS, clock=now_utc):
        if not secret or len(secret) < 32:
            raise RuntimeError(
                "JWT_SECRET must be set and be at least 32 characters when TOKEN_SCHEME=jwt. "
                "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )
        self.secret = secret
        self.algorithm = algorithm
        self.expire_hours = expire_hours
        self.clock = clock

    def issue(self, user_id: str) -> str:
        claims = {"sub": user_id, "iat": self.clock()}
        if self.expire_hours > 0:
            claims["exp"] = self.clock() + timedelta(hours=self.expire_hours)
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise AuthenticationError("Invalid token")
        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid token")
        return user_id


def build_authenticator(scheme: str = TOKEN_SCHEME) -> Authenticator:
    if scheme == "dev":
        return DevTokenAuthenticator()
    if scheme == "jwt":
        return JWTAuthenticator(JWT_SECRET)
    raise RuntimeError(f"Unknown TOKEN_SCHEME {scheme!r}; expected 'dev' or 'jwt'")

# ---------------------------------------------------------------------------
# Account service
# ---------------------------------------------------------------------------
class AccountService:
    def __init__(self, users: UserStore, authenticator: Authenticator,
                 clock: Callable = now_utc):
        self.users = users
        self.authenticator = authenticator
        self.clock = clock

    def signup(self, email: Optional[str], national_id: Optional[str],
               password: Optional[str], role: Optional[Role],
               language: Optional[str] = None) -> Tuple[str, User]:
        """Create a user and return ``(token, user)``."""
        email = email or None
        national_id = national_id or None
        if (email is None and national_id is None) or not password or role is None:
            raise ValidationError("email or national ID, password and role are required")
        user = User(id=new_id(), email=email, national_id=national_id,
                    password_hash=hash_password(password), role=role,
                    language=language or None, created_at=self.clock())
        self.users.add(user)
        logger.info("Signed up user %s (%s)", user.id, user.role.value)
        return self.authenticator.issue(user.id), user

    def login(self, identifier: Optional[str], password: Optional[str]) -> Tuple[str, User]:
        if not identifier or not password:
            raise AuthenticationError("Invalid credentials")
        for user in self.users.find_by_identifier(identifier):
            if verify_password(password, user.password_hash):
                logger.info("User %s logged in", user.id)
                return self.authenticator.issue(user.id), user
        logger.info("Failed login attempt")
        raise AuthenticationError("Invalid credentials")

    def resolve(self, token: str) -> str:
        return self.current_user(token).id

    def current_user(self, token: str) -> User:
        user_id = self.authenticator.decode(token)
        user = self.users.get(user_id)
        if user is None:
            raise AuthenticationError("Invalid token")
        return user
