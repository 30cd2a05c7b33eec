from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError

from homecare.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class ActorClaims(BaseModel):
    """Identity and role carried by a bearer token."""

    user_id: int
    role: str
    email: str


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_actor_token(user_id: int, role: str, email: str) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": str(user_id), "role": role, "email": email, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_actor_token(token: str) -> ActorClaims:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return ActorClaims(
            user_id=int(payload.get("sub", "")),
            role=payload.get("role", ""),
            email=payload.get("email", ""),
        )
    except (JWTError, ValidationError, ValueError) as exc:
        raise ValueError("Invalid token") from exc
