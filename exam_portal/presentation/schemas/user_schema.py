from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: str

    class Config:
        from_attributes = True  # SQLAlchemy compatibility


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
