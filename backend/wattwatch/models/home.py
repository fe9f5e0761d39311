"""Home model: address, size and tariff configuration."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, String, DateTime, Integer, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from wattwatch.models.base import Base


class Home(Base):
    __tablename__ = "homes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    street: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="India")
    zip_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    square_footage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    number_of_rooms: Mapped[int] = mapped_column(Integer, default=1)
    home_type: Mapped[str] = mapped_column(String(20), default="house")

    # Tariff: flat rate or progressive slabs over monthly units
    tariff_structure: Mapped[str] = mapped_column(String(10), default="slab")  # flat, slab
    electricity_rate: Mapped[float] = mapped_column(Float, nullable=False)
    tariff_slabs: Mapped[list] = mapped_column(JSON, nullable=False)
    fixed_charges: Mapped[float] = mapped_column(Float, default=50.0)
    sanctioned_load_kw: Mapped[float] = mapped_column(Float, default=5.0)
    per_kw_charge: Mapped[float] = mapped_column(Float, default=20.0)
    tax_percentage: Mapped[float] = mapped_column(Float, default=5.0)

    is_active: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Home(id={self.id}, name='{self.name}', tariff='{self.tariff_structure}')>"
