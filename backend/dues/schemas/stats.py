from pydantic import BaseModel


class PaymentStats(BaseModel):
    total_applications: int
    applications_by_status: dict[str, int]
    total_deposits: int
    deposits_by_status: dict[str, int]
    total_amount: int
    total_matches: int
    auto_matches: int
    manual_matches: int
    auto_match_rate: int  # percent
