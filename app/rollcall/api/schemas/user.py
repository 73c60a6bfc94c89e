# app/rollcall/api/schemas/user.py
from pydantic import BaseModel, ConfigDict
from typing import Optional

class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool = False

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserResponse(BaseModel):
    teacher_id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: Token
    user: UserResponse
    remember_me: bool = False

# Internal representation of JWT data
class TokenData(BaseModel):
    teacher_id: Optional[str] = None


class DepartmentRequest(BaseModel):
    dept_code: str
