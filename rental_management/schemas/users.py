from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    ADMIN = "Admin"
    CUSTOMER = "Customer"


class AccountStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    LOCKED = "Locked"


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    user_id: str = Field(pattern=r"^[AC]\d{3,}$")
    username: str = Field(min_length=1)
    credential_hash: str = Field(min_length=1)
    full_name: str = ""
    email: str = ""
    role: UserRole
    status: AccountStatus = AccountStatus.ACTIVE
    last_login_time: Optional[datetime] = None
    created_time: datetime
    failed_login_count: int = Field(default=0, ge=0)

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    @property
    def can_login(self) -> bool:
        return self.status == AccountStatus.ACTIVE
