from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, Field

RENTAL_STATUS_ACTIVE = "Active"
DEFAULT_RETURN_CONDITION = "Good"


class Rental(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    rental_id: str = Field(pattern=r"^R\d{3,}$")
    equipment_id: str
    customer_id: str
    start_date: date
    days_rented: int = Field(gt=0)
    total_cost: float = Field(ge=0)
    status: str = RENTAL_STATUS_ACTIVE

    @property
    def expected_return_date(self) -> date:
        return self.start_date + timedelta(days=self.days_rented)

    def days_overdue(self, today: date) -> int:
        return max(0, (today - self.expected_return_date).days)


class ReturnRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    rental_id: str = Field(pattern=r"^R\d{3,}$")
    equipment_id: str
    customer_id: str
    start_date: date
    end_date: date
    total_cost: float = Field(ge=0)
    late_fee: float = Field(default=0.0, ge=0)
    condition: str = DEFAULT_RETURN_CONDITION

    @property
    def final_amount(self) -> float:
        return self.total_cost + self.late_fee

    @property
    def days_held(self) -> int:
        return (self.end_date - self.start_date).days
