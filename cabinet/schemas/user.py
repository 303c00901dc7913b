from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class UserCreate(BaseModel):
    email: EmailStr
    name: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Principal(BaseModel):
    """Authenticated caller, passed explicitly into core operations"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
