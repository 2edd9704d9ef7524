from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, model_validator

from wagerbook.db.init import Datastore
from wagerbook.deps import get_datastore
from wagerbook.services import users as user_service

router = APIRouter()


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)
    email: str | None = None
    phone_number: str | None = None

    @model_validator(mode="after")
    def require_contact(self) -> "RegisterRequest":
        if not self.email and not self.phone_number:
            raise ValueError("Either email or phone number is required")
        return self


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, datastore: Datastore = Depends(get_datastore)):
    """Create an account with the starting balance and return an identity token."""
    _, token = await user_service.register(datastore, body.username, body.password, body.email, body.phone_number)
    return {"message": "User registered successfully", "token": token}


@router.post("/login")
async def login(body: LoginRequest):
    token = await user_service.login(body.username, body.password)
    return {"token": token}
