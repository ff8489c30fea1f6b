import re
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

import phonenumbers

DEFAULT_PHONE_REGION = "BR"


def normalize_phone(value: Optional[str], region: str = DEFAULT_PHONE_REGION) -> Optional[str]:
    """E.164 form of a phone number, or None when it cannot be parsed as a valid number"""
    if value is None or not str(value).strip():
        return None

    cleaned = re.sub(r"[^\d+]", "", str(value).strip())
    try:
        number = phonenumbers.parse(cleaned, None if cleaned.startswith("+") else region)
    except phonenumbers.NumberParseException:
        return None

    if not phonenumbers.is_valid_number(number):
        return None
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None or not v.strip():
            return None
        normalized = normalize_phone(v)
        if normalized is None:
            raise ValueError('Número de telefone inválido')
        return normalized


class ProfileResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
