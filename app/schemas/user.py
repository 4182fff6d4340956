from pydantic import BaseModel, EmailStr, Field, field_validator
from app.utils.sanitization import sanitize_string


class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr

    @field_validator("username", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=4, description="At least 4 characters")


class UserLogin(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: int | None = None


class UserRef(BaseModel):
    user_id: int
    username: str

    class Config:
        from_attributes = True


class UserResponse(UserBase):
    user_id: int
    collaborators: list[str] = Field(default_factory=list, validation_alias="collaborator_usernames")

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
