"""Barber (service provider) models."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BarberProfile(BaseModel):
    """Public profile of a barber."""

    id: Optional[int] = None
    specialties: list[str] = Field(default_factory=list)
    bio: Optional[str] = None
    active: bool = True
    avatar_url: Optional[str] = None

    @field_validator("specialties", mode="before")
    @classmethod
    def validate_specialties(cls, v):
        """Accept null and drop blank tags."""
        if not v:
            return []
        return [tag.strip() for tag in v if tag and tag.strip()]


class Barber(BaseModel):
    """Barber model."""

    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    profile: BarberProfile = Field(default_factory=BarberProfile)
    specialty: Optional[str] = Field(None, description="Display label built from specialties")

    @field_validator("profile", mode="before")
    @classmethod
    def validate_profile(cls, v):
        return v or BarberProfile()

    class Config:
        json_schema_extra = {
            "example": {
                "id": 7,
                "name": "João",
                "email": "joao@barbearia.com",
                "phone": "(11) 98888-7777",
                "profile": {
                    "specialties": ["Degradê", "Barba"],
                    "bio": "Dez anos de tesoura",
                    "active": True,
                    "avatar_url": "/uploads/joao.png",
                },
            }
        }

    @property
    def is_active(self) -> bool:
        return self.profile.active
