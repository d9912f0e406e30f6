"""Reference data models: services, staff and rooms."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceCategory(str, Enum):
    FACIAL = "facial"
    MASSAGE = "massage"
    WAXING = "waxing"
    BODY_TREATMENT = "body_treatment"
    PACKAGE = "package"
    SPECIAL = "special"


class Service(BaseModel):
    """A bookable treatment. Immutable reference data."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: ServiceCategory
    duration: int = Field(gt=0, description="Minutes")
    price: float = Field(ge=0)
    requires_special_room: bool = False
    is_couples_service: bool = False


class Staff(BaseModel):
    """A therapist with capabilities and a weekly work pattern."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    capabilities: frozenset[ServiceCategory]
    work_days: frozenset[int] = Field(description="Sunday=0 .. Saturday=6")
    default_room_id: Optional[str] = None

    @field_validator("work_days")
    @classmethod
    def _check_work_days(cls, value: frozenset[int]) -> frozenset[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError(f"work_days must be within 0..6, got {sorted(value)}")
        return value

    def can_perform(self, category: ServiceCategory) -> bool:
        return category in self.capabilities

    def works_on(self, weekday: int) -> bool:
        return weekday in self.work_days


class Room(BaseModel):
    """A treatment room."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    capacity: int = Field(ge=1)
    capabilities: frozenset[ServiceCategory]
    special_equipment: bool = False

    def supports(self, service: Service) -> bool:
        """Check category, special-equipment and couples-capacity requirements."""
        if service.category not in self.capabilities:
            return False
        if service.requires_special_room and not self.special_equipment:
            return False
        if service.is_couples_service and self.capacity < 2:
            return False
        return True
