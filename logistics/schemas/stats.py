# logistics/schemas/stats.py
from sqlmodel import SQLModel


class CustomerStats(SQLModel):
    total: int
    by_status: dict[str, int]
    by_city: dict[str, int]
    recent: int


class OrderStats(SQLModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    total_revenue: float
    average_price: float
    average_delivery_days: float
    late: int


class MonthlyOrderCount(SQLModel):
    month: int
    count: int
