from pydantic import BaseModel


class LoginRequest(BaseModel):
    """Request model for admin login."""
    username: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str
