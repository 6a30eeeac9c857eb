"""API request/response models"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterStartRequest(_CamelModel):
    username: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")


class RegisterStartResponse(_CamelModel):
    success: bool = True
    options: Dict[str, Any]
    factor_reference: str = Field(alias="factorReference")


class RegisterCompleteRequest(_CamelModel):
    credential: Optional[Dict[str, Any]] = None
    factor_reference: Optional[str] = Field(default=None, alias="factorReference")


class RegisterCompleteResponse(_CamelModel):
    success: bool = True
    message: str = "Registration successful"
    username: str


class LoginStartRequest(_CamelModel):
    username: Optional[str] = None


class LoginStartResponse(_CamelModel):
    success: bool = True
    options: Dict[str, Any]
    challenge_reference: str = Field(alias="challengeReference")


class LoginCompleteRequest(_CamelModel):
    credential: Optional[Dict[str, Any]] = None
    challenge_reference: Optional[str] = Field(default=None, alias="challengeReference")


class PublicUser(_CamelModel):
    username: str
    display_name: str = Field(alias="displayName")


class LoginCompleteResponse(_CamelModel):
    success: bool = True
    message: str = "Login successful"
    user: PublicUser


class CurrentUserResponse(_CamelModel):
    authenticated: bool
    user: Optional[PublicUser] = None


class LogoutResponse(_CamelModel):
    success: bool = True
    message: str = "Logged out successfully"
