import logging

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.auth_token import create_access_token
from app.database import get_db
from app.deps.security import require_user
from app.errors import Conflict, Unauthorized, envelope
from app.models.user import User
from app.schemas import LoginRequest, SignupRequest, TokenRead, UserRead
from app.security import hash_password, password_needs_rehash, verify_password

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_LOGGER = logging.getLogger(__name__)


def _user_payload(user: User) -> dict:
    return UserRead.model_validate(user).model_dump(by_alias=True)


async def _authenticate(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("INVALID_CREDENTIALS")

    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.add(user)
        await db.commit()
    return user


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, db: AsyncSession = Depends(get_db)):
    email = payload.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none():
        raise Conflict("EMAIL_ALREADY_EXISTS")

    user = User(
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("EMAIL_ALREADY_EXISTS")

    _LOGGER.info("Registered %s user %s", user.role, user.id)
    return envelope(_user_payload(user))


@router.post("/signin")
async def signin(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await _authenticate(db, payload.email, payload.password)
    return envelope(TokenRead(token=create_access_token(user)).model_dump(by_alias=True))


@router.post("/login")
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """OAuth2 password flow for the interactive docs; ``username`` is the email."""
    user = await _authenticate(db, form_data.username, form_data.password)
    return {"access_token": create_access_token(user), "token_type": "bearer"}


@router.get("/me")
async def read_me(current_user: User = Depends(require_user)):
    return envelope(_user_payload(current_user))
