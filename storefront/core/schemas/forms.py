"""Form payload schemas with validation"""

from decimal import Decimal
from typing import Dict

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class CredentialsForm(BaseModel):
    """Schema for login form data"""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("Please enter a valid email address")
        return v


class SignupForm(CredentialsForm):
    """Schema for signup form data"""

    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords have to match")
        return self


class ProductForm(BaseModel):
    """Schema for the admin add/edit product form"""

    title: str = Field(..., min_length=3, max_length=200)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: str = Field(..., min_length=5, max_length=400)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


def form_errors(exc: ValidationError) -> Dict[str, str]:
    """Map a ValidationError to {field: message} for templates."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__all__"
        message = err["msg"]
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors
