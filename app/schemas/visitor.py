# app/schemas/visitor.py
from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError
from datetime import datetime
from typing import Optional
from app.exceptions import ValidationError
from app.models.visitor import VisitorStatus


class VisitorRegistration(BaseModel):
    """Front-desk registration form. Every field is required and trimmed."""
    full_name: str
    contact_number: str
    department_visiting: str
    person_to_visit: str

    @field_validator("full_name", "contact_number", "department_visiting", "person_to_visit", mode="before")
    @classmethod
    def _strip_required(cls, value):
        if value is None:
            raise ValueError("field is required")
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        if not value:
            raise ValueError("field must not be empty")
        return value

    @field_validator("contact_number")
    @classmethod
    def _digits_only(cls, value: str) -> str:
        if not value.isdigit() or not value.isascii():
            raise ValueError("contact number must contain digits only")
        return value

    @classmethod
    def parse(cls, data: dict) -> "VisitorRegistration":
        """Validate raw input, raising the app's ValidationError with per-field messages."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            fields = {}
            for err in e.errors():
                name = ".".join(str(part) for part in err["loc"]) or "request"
                fields[name] = err["msg"].removeprefix("Value error, ")
            raise ValidationError("All fields are required", fields=fields) from None


class VisitorCreated(BaseModel):
    id: int
    message: str = "Visitor registered successfully"


class VisitorOut(BaseModel):
    id: int
    full_name: str
    contact_number: str
    department_visiting: str
    person_to_visit: str
    in_time: datetime
    out_time: Optional[datetime]
    approved: bool
    security_confirmed: bool
    security_out_time: Optional[datetime]
    photo_path: Optional[str]
    qr_code_path: Optional[str]
    email_sent: bool
    status: VisitorStatus

    class Config:
        from_attributes = True


class VisitorStats(BaseModel):
    total: int
    active: int
    secured: int
    security_pending: int
