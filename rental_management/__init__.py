from rental_management.app import RentalSystem, create_rental_system

__all__ = ["RentalSystem", "create_rental_system"]
