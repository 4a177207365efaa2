# =======================================================================================
# campus_access/services/auth_service.py - Desk Operator Authentication
# =======================================================================================

from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import jwt
from sqlalchemy import insert, select
from sqlalchemy.engine import Connection
from passlib.context import CryptContext

from ..config import config
from ..models.tables import admins
from ..utils.clock import utcnow
from ..utils.exceptions import AuthenticationError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthService:
    """Handles operator authentication (username/password)."""

    def hash_password(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    def username_exists(self, conn: Connection, username: str) -> bool:
        return conn.execute(
            select(admins.c.id).where(admins.c.username == username)
        ).first() is not None

    def create_admin(self, conn: Connection, username: str, password: str) -> int:
        result = conn.execute(
            insert(admins).values(
                username=username, password_hash=self.hash_password(password)
            )
        )
        return result.inserted_primary_key[0]

    def authenticate_admin(
        self, conn: Connection, username: str, password: str
    ) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            select(admins.c.id, admins.c.username, admins.c.password_hash)
            .where(admins.c.username == username)
        ).mappings().first()

        if not row:
            return None

        if not self.verify_password(password, row["password_hash"]):
            return None

        return {"id": row["id"], "username": row["username"]}

    def create_token(self, admin_id: int, username: str, now: Optional[datetime] = None) -> str:
        """Signed bearer token identifying the desk operator."""
        issued_at = now or utcnow()
        claims = {
            "sub": str(admin_id),
            "username": username,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=config.JWT_EXPIRES_MINUTES),
        }
        return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    def resolve_token(self, conn: Connection, token: str) -> Dict[str, Any]:
        """Map a bearer token back to its operator, or raise AuthenticationError."""
        try:
            claims = jwt.decode(
                token,
                config.JWT_SECRET,
                algorithms=[config.JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError()

        admin_id = claims["sub"]
        if not admin_id.isdigit():
            raise AuthenticationError()

        row = conn.execute(
            select(admins.c.id, admins.c.username).where(
                admins.c.id == int(admin_id), admins.c.username == claims.get("username")
            )
        ).mappings().first()
        if not row:
            raise AuthenticationError()
        return dict(row)
