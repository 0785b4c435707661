"""Service models for barbershop services."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Service(BaseModel):
    """Service model."""

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, description="Price in BRL")
    duration_minutes: int = Field(..., gt=0, le=600, description="Duration in minutes")
    active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "Corte Masculino",
                "description": "Corte na tesoura e máquina",
                "price": "45.00",
                "duration_minutes": 30,
                "active": True,
            }
        }

    @property
    def price_label(self) -> str:
        return f"R$ {self.price:.2f}"

    @property
    def duration_label(self) -> str:
        return f"{self.duration_minutes} min"
