from __future__ import annotations

from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rentals.models import DISTRICTS


# Numeric(10, 2)
MAX_PRICE = Decimal("99999999.99")


def _clean_title(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Title is required")
    return v


def _clean_district(v: str) -> str:
    if v not in DISTRICTS:
        raise ValueError("Unknown district")
    return v


def _clean_price(v: str | int | float) -> str:
    if isinstance(v, bool):
        raise ValueError("Invalid price")
    try:
        d = Decimal(str(v).strip())
    except InvalidOperation:
        raise ValueError("Invalid price")
    if not d.is_finite() or d < 0 or d > MAX_PRICE:
        raise ValueError("Invalid price")
    if d.as_tuple().exponent < -2:
        raise ValueError("Price allows at most 2 decimal places")
    return str(d)


class PropertyCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str | None = None
    # Accepted as string or number; kept as an exact decimal string.
    price: str | int | float
    size: int = Field(ge=1)
    district: str
    equipment: str | None = None
    # Stable media keys. Signed URLs echoed back by clients are normalized to keys.
    photos: list[str] = Field(default_factory=list)
    virtual_tour_url: str | None = Field(default=None, alias="virtualTourUrl")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("district")
    @classmethod
    def check_district(cls, v: str) -> str:
        return _clean_district(v)

    @field_validator("price")
    @classmethod
    def check_price(cls, v: str | int | float) -> str:
        return _clean_price(v)


class PropertyUpdateIn(BaseModel):
    """
    Partial update for the owner editing an existing property.
    Only fields present in the payload are applied.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    price: str | int | float | None = None
    size: int | None = Field(default=None, ge=1)
    district: str | None = None
    equipment: str | None = None
    photos: list[str] | None = None
    virtual_tour_url: str | None = Field(default=None, alias="virtualTourUrl")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        return None if v is None else _clean_title(v)

    @field_validator("district")
    @classmethod
    def check_district(cls, v: str | None) -> str | None:
        return None if v is None else _clean_district(v)

    @field_validator("price")
    @classmethod
    def check_price(cls, v: str | int | float | None) -> str | None:
        return None if v is None else _clean_price(v)


class MessageCreateIn(BaseModel):
    content: str = Field(min_length=1)


class RegisterIn(BaseModel):
    email: str
    password: str = Field(min_length=6)
    name: str = ""


class LoginIn(BaseModel):
    email: str
    password: str


class GoogleLoginIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: str = Field(min_length=1, alias="idToken")
