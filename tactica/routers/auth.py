from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.database import get_db
from tactica.dependencies import get_current_user
from tactica.models.user import User
from tactica.schemas.auth import TokenResponse, UserLogin, UserRegister, UserResponse
from tactica.services.auth_service import (
    authenticate_user,
    create_access_token,
    register_user,
    token_lifetime_seconds,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(body: UserRegister, db: AsyncSession = Depends(get_db)):
    user = await register_user(db, email=body.email, username=body.username, password=body.password)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/login", response_model=TokenResponse)
async def login_endpoint(body: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, email=body.email, password=body.password)
    return TokenResponse(access_token=create_access_token(user.id), expires_in=token_lifetime_seconds())


@router.get("/me", response_model=UserResponse)
async def me_endpoint(current_user: User = Depends(get_current_user)):
    return current_user
