import re
from pydantic import BaseModel, SecretStr, field_validator
from typing import Optional


"""
auth/register
"""


class UserRegistrationModel(BaseModel):
    email: str
    password: SecretStr
    display_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, email: str) -> str:
        email = email.strip().lower()
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email):
            raise ValueError("Email address is not valid.")
        return email

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, display_name: Optional[str]) -> Optional[str]:
        if display_name is None:
            return display_name

        display_name = display_name.strip()
        # Length check (min 1, max 50)
        if not (1 <= len(display_name) <= 50):
            raise ValueError(
                f"Display name must be between 1 and 50 characters long (got {len(display_name)})."
            )
        return display_name

    @field_validator("password")
    @classmethod
    def validate_password(cls, password: SecretStr) -> SecretStr:
        password_str = password.get_secret_value()

        # Minimum length of 8 characters (no maximum)
        if len(password_str) < 8:
            raise ValueError("Password must be at least 8 characters long.")

        # Must include letters (upper and lower), numbers, and special characters.
        password_regex = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])(?=.*[!@#$%^&*()_+={}\[\]|\\;:'\",.<>?/~`]).{8,}$"

        if not re.match(password_regex, password_str):
            # General error message to covers which types of characters are missing.
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, one number, and one special character."
            )

        return password


class UserRegistrationResponseModel(BaseModel):
    id: str
    email: str
    display_name: str
    access_token: Optional[str] = None
    expires_in: Optional[int] = None


"""
auth/login
"""


class UserLoginModel(BaseModel):
    email: str
    password: SecretStr


class UserLoginResponseModel(BaseModel):
    access_token: str
    expires_in: int
    user_id: str
    email: str
    is_admin: bool


"""
auth/access
"""


class AccessTokenResponseModel(BaseModel):
    access_token: str


"""
auth/account (DELETE)
"""


class DeleteAccountModel(BaseModel):
    email: str
    password: SecretStr


class DeleteAccountResponseModel(BaseModel):
    account_deleted: bool
