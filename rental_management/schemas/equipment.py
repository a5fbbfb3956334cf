from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CATEGORY = "General"


class EquipmentStatus(str, Enum):
    AVAILABLE = "Available"
    RENTED = "Rented"
    MAINTENANCE = "Maintenance"


class Equipment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(pattern=r"^E\d{3,}$")
    name: str = Field(min_length=1)
    daily_rate: float = Field(ge=0)
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    category: str = DEFAULT_CATEGORY

    @property
    def is_available(self) -> bool:
        return self.status == EquipmentStatus.AVAILABLE
