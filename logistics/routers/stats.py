# logistics/routers/stats.py
from datetime import date

from fastapi import APIRouter, Depends

from logistics.dependencies import get_customer_service, get_order_service
from logistics.models.customer import CustomerStatus
from logistics.models.order import OrderPriority, OrderStatus
from logistics.schemas.stats import CustomerStats, MonthlyOrderCount, OrderStats
from logistics.services.customer_service import CustomerService
from logistics.services.order_service import OrderService

router = APIRouter(prefix="/stats", tags=["Statistics"])


@router.get("/customers", response_model=CustomerStats)
def customer_stats(
    days: int = 30,
    service: CustomerService = Depends(get_customer_service),
):
    """Customer counts; `recent` covers the last `days` days."""
    return CustomerStats(
        total=service.total_count(),
        by_status={s.value: service.count_by_status(s) for s in CustomerStatus},
        by_city=service.stats_by_city(),
        recent=len(service.recent_customers(days)),
    )


@router.get("/orders", response_model=OrderStats)
def order_stats(service: OrderService = Depends(get_order_service)):
    """Revenue and average price exclude cancelled orders."""
    return OrderStats(
        total=service.total_count(),
        by_status={s.value: service.count_by_status(s) for s in OrderStatus},
        by_priority={p.value: service.count_by_priority(p) for p in OrderPriority},
        total_revenue=round(service.total_revenue(), 3),
        average_price=round(service.average_price(), 3),
        average_delivery_days=round(service.average_delivery_days(), 2),
        late=len(service.late_orders()),
    )


@router.get("/orders/monthly", response_model=list[MonthlyOrderCount])
def monthly_order_counts(
    year: int | None = None,
    service: OrderService = Depends(get_order_service),
):
    """Orders per month for `year` (defaults to the current year)."""
    counts = service.monthly_counts(year or date.today().year)
    return [MonthlyOrderCount(month=m, count=c) for m, c in sorted(counts.items())]
