from datetime import datetime, timedelta, timezone
import logging
import os

from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.database import get_db
from app.errors import Unauthorized
from app.models.user import User

load_dotenv()

SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
EXPIRY_MINUTES = int(os.getenv("JWT_EXPIRY_MINUTES", str(7 * 24 * 60)))

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

_LOGGER = logging.getLogger(__name__)


def create_access_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=EXPIRY_MINUTES)
    claims = {"user_id": user.id, "role": user.role, "exp": expire}
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the ``user_id`` claim of a valid token or raise ``Unauthorized``."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        _LOGGER.info("Rejected access token: %s", exc)
        raise Unauthorized()
    user_id = payload.get("user_id")
    if not user_id:
        raise Unauthorized()
    return user_id


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a stored user.

    The role comes from the database row rather than the token claims so a
    role change takes effect without re-issuing tokens.
    """
    user_id = decode_access_token(token)
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthorized()
    return user
