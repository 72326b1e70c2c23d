from pydantic import BaseModel


class SignupRequest(BaseModel):
    email: str
    password: str
    full_name: str | None = None
    role: str = "user"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str | None
    role: str
    created_at: str


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse
