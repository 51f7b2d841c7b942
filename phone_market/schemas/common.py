from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str


class HealthOut(BaseModel):
    status: str


class VerifyOut(BaseModel):
    is_admin: bool
    user_id: int | None = None
    development: bool = False
