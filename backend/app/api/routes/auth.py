"""
Account endpoints: registration and login.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.schemas.user import Token, UserCreate, UserLogin, UserResponse
from app.services.auth_service import authenticate_user, register_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Create a player account. Emails are stored lower-cased; 409 if taken."""
    user = await register_user(db, user_data)
    await commit(db)
    return user


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """
    Exchange credentials for a bearer token. The role is returned alongside
    so clients can show admin screens without decoding the token.
    """
    user, token = await authenticate_user(db, login_data)
    return Token(access_token=token, user_id=user.id, role=user.role)
