from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db as db_session
from app.config import settings
from app.models.user import User as UserModel
from app.services.users import get_user_by_id
from app.utils.security import decode_token, create_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def get_db(db: AsyncSession = Depends(db_session)):
    return db


def set_auth_cookie(response: Response, name: str, token: str, max_age: int):
    response.set_cookie(
        name,
        token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
        max_age=max_age,
        path="/",
    )


def resolve_user_id(request: HTTPConnection, token: str | None, response: Response | None = None) -> int | None:
    """
    Bearer token first, then the access cookie. When both are missing or
    expired a valid refresh cookie is traded for a fresh access cookie.
    """
    for candidate in (token, request.cookies.get(ACCESS_COOKIE)):
        if candidate:
            user_id = decode_token(candidate)
            if user_id is not None:
                return user_id

    refresh = request.cookies.get(REFRESH_COOKIE)
    if not refresh:
        return None
    user_id = decode_token(refresh, refresh=True)
    if user_id is not None and response is not None:
        set_auth_cookie(
            response,
            ACCESS_COOKIE,
            create_access_token({"sub": str(user_id)}),
            settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
    return user_id


async def get_current_user(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    token: str | None = Depends(oauth2_scheme),
) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = resolve_user_id(request, token, response)
    if user_id is None:
        raise credentials_exception

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception
    return user
