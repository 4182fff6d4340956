from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.dependencies import get_db, get_current_user, set_auth_cookie, ACCESS_COOKIE, REFRESH_COOKIE
from app.models.user import User as UserModel
from app.schemas.user import Token, UserCreate, UserLogin, UserResponse, LoginResponse
from app.services import users as user_service
from app.utils.security import create_access_token, create_refresh_token

router = APIRouter(tags=["auth"])


def _invalid_credentials():
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/user/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(user: UserCreate, db: AsyncSession = Depends(get_db)):
    return await user_service.create_user(db, user)


@router.post("/user/login", response_model=LoginResponse)
async def login(credentials: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    user = await user_service.authenticate(db, credentials.username, credentials.password)
    if not user:
        raise _invalid_credentials()

    access_token = create_access_token({"sub": str(user.user_id)})
    refresh_token = create_refresh_token({"sub": str(user.user_id)})
    set_auth_cookie(response, ACCESS_COOKIE, access_token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)
    set_auth_cookie(response, REFRESH_COOKIE, refresh_token, settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60)
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "user": user,
    }


@router.post("/user/logout")
async def logout(response: Response):
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, path="/", httponly=True, secure=settings.COOKIE_SECURE, samesite="strict")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/user/me", response_model=UserResponse)
async def get_me(current_user: UserModel = Depends(get_current_user)):
    return current_user


@router.post("/token", response_model=Token)
async def login_for_access_token(
    db: AsyncSession = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
):
    user = await user_service.authenticate(db, form_data.username, form_data.password)
    if not user:
        raise _invalid_credentials()
    access_token = create_access_token({"sub": str(user.user_id)})
    return {"access_token": access_token, "token_type": "bearer"}
