from sqlalchemy import Column, Date, DateTime, Float, Integer, String

from rental_management.db.base import Base


class UserRow(Base):
    __tablename__ = "Users"

    UserID = Column(String(20), primary_key=True)
    Username = Column(String(50), nullable=False, unique=True)
    CredentialHash = Column(String(255), nullable=False)
    FullName = Column(String(100))
    Email = Column(String(255))
    Role = Column(String(20), nullable=False)
    Status = Column(String(20), nullable=False)
    LastLoginTime = Column(DateTime)
    CreatedTime = Column(DateTime, nullable=False)
    FailedLoginCount = Column(Integer, default=0)

    FIELD_MAP = {
        "user_id": "UserID",
        "username": "Username",
        "credential_hash": "CredentialHash",
        "full_name": "FullName",
        "email": "Email",
        "role": "Role",
        "status": "Status",
        "last_login_time": "LastLoginTime",
        "created_time": "CreatedTime",
        "failed_login_count": "FailedLoginCount",
    }


class EquipmentRow(Base):
    __tablename__ = "Equipment"

    EquipmentID = Column(String(20), primary_key=True)
    Name = Column(String(255), nullable=False)
    DailyRate = Column(Float, nullable=False)
    Status = Column(String(20), nullable=False)
    Category = Column(String(100))

    FIELD_MAP = {
        "id": "EquipmentID",
        "name": "Name",
        "daily_rate": "DailyRate",
        "status": "Status",
        "category": "Category",
    }


class RentalRow(Base):
    __tablename__ = "Rentals"

    RentalID = Column(String(20), primary_key=True)
    EquipmentID = Column(String(20), nullable=False)
    CustomerID = Column(String(20), nullable=False)
    StartDate = Column(Date, nullable=False)
    DaysRented = Column(Integer, nullable=False)
    TotalCost = Column(Float, nullable=False)
    Status = Column(String(20), default="Active")

    FIELD_MAP = {
        "rental_id": "RentalID",
        "equipment_id": "EquipmentID",
        "customer_id": "CustomerID",
        "start_date": "StartDate",
        "days_rented": "DaysRented",
        "total_cost": "TotalCost",
        "status": "Status",
    }


class ReturnRecordRow(Base):
    __tablename__ = "ReturnRecords"

    RentalID = Column(String(20), primary_key=True)
    EquipmentID = Column(String(20), nullable=False)
    CustomerID = Column(String(20), nullable=False)
    StartDate = Column(Date, nullable=False)
    EndDate = Column(Date, nullable=False)
    TotalCost = Column(Float, nullable=False)
    LateFee = Column(Float, default=0)
    Condition = Column(String(100))

    FIELD_MAP = {
        "rental_id": "RentalID",
        "equipment_id": "EquipmentID",
        "customer_id": "CustomerID",
        "start_date": "StartDate",
        "end_date": "EndDate",
        "total_cost": "TotalCost",
        "late_fee": "LateFee",
        "condition": "Condition",
    }
