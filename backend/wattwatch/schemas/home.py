"""Home schemas with tariff slab validation."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from wattwatch.services.tariff import check_slabs

HomeType = Literal["apartment", "house", "condo", "townhouse", "other"]
TariffStructure = Literal["flat", "slab"]


class TariffSlab(BaseModel):
    min_units: float = Field(ge=0)
    max_units: float | None = None
    rate: float = Field(ge=0)


class _TariffFields(BaseModel):
    @model_validator(mode="after")
    def _check_slabs(self):
        slabs = getattr(self, "tariff_slabs", None)
        if slabs is not None:
            errors = check_slabs([s.model_dump() for s in slabs])
            if errors:
                raise ValueError("Invalid tariff slabs: " + "; ".join(errors))
        return self


class HomeCreate(_TariffFields):
    name: str = Field(min_length=1, max_length=100)
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str = "India"
    zip_code: str = Field(min_length=3, max_length=10)
    square_footage: float | None = Field(default=None, ge=0)
    number_of_rooms: int = Field(default=1, ge=1)
    home_type: HomeType = "house"
    tariff_structure: TariffStructure = "slab"
    electricity_rate: float | None = Field(default=None, ge=0)
    tariff_slabs: list[TariffSlab] | None = None
    fixed_charges: float | None = Field(default=None, ge=0)
    sanctioned_load_kw: float = Field(default=5.0, ge=0)
    per_kw_charge: float = Field(default=20.0, ge=0)
    tax_percentage: float = Field(default=5.0, ge=0, le=100)


class HomeUpdate(_TariffFields):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = Field(default=None, min_length=3, max_length=10)
    square_footage: float | None = Field(default=None, ge=0)
    number_of_rooms: int | None = Field(default=None, ge=1)
    home_type: HomeType | None = None
    tariff_structure: TariffStructure | None = None
    electricity_rate: float | None = Field(default=None, ge=0)
    tariff_slabs: list[TariffSlab] | None = None
    fixed_charges: float | None = Field(default=None, ge=0)
    sanctioned_load_kw: float | None = Field(default=None, ge=0)
    per_kw_charge: float | None = Field(default=None, ge=0)
    tax_percentage: float | None = Field(default=None, ge=0, le=100)


class HomeOut(BaseModel):
    id: str
    user_id: str
    name: str
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str
    square_footage: float | None = None
    number_of_rooms: int
    home_type: str
    tariff_structure: str
    electricity_rate: float
    tariff_slabs: list[TariffSlab]
    fixed_charges: float
    sanctioned_load_kw: float
    per_kw_charge: float
    tax_percentage: float
    is_active: bool
    device_count: int = 0
    active_device_count: int = 0
    created_at: datetime | None = None
