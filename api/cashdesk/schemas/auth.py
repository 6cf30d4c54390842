from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from cashdesk.core.security import MIN_PASSWORD_LENGTH, password_fits


class UserRole(str, Enum):
    CASHIER = "cashier"
    MANAGER = "manager"
    ADMIN = "admin"


def _password_fits(value: str | None) -> str | None:
    if value and not password_fits(value):
        raise ValueError("Password is too long")
    return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    full_name: str | None = Field(default=None, max_length=250)

    @field_validator("password")
    @classmethod
    def password_length(cls, value):
        return _password_fits(value)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str
    full_name: str | None
    role: UserRole


class UserOut(BaseModel):
    id: str
    email: str
    full_name: str | None
    role: UserRole = UserRole.CASHIER
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=250)
    current_password: str | None = None
    new_password: str | None = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    confirm_password: str | None = None

    @field_validator("new_password")
    @classmethod
    def password_length(cls, value):
        return _password_fits(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password:
            if not self.current_password:
                raise ValueError("Current password is required to set a new one")
            if self.new_password != self.confirm_password:
                raise ValueError("Passwords do not match")
        return self
