from rental_management.schemas.equipment import DEFAULT_CATEGORY, Equipment, EquipmentStatus
from rental_management.schemas.rentals import DEFAULT_RETURN_CONDITION, RENTAL_STATUS_ACTIVE, Rental, ReturnRecord
from rental_management.schemas.users import AccountStatus, User, UserRole

__all__ = [
    "AccountStatus",
    "DEFAULT_CATEGORY",
    "DEFAULT_RETURN_CONDITION",
    "Equipment",
    "EquipmentStatus",
    "RENTAL_STATUS_ACTIVE",
    "Rental",
    "ReturnRecord",
    "User",
    "UserRole",
]
