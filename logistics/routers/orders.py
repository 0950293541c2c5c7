# logistics/routers/orders.py
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from logistics.dependencies import get_order_service, raise_for_failure
from logistics.models.order import Order, OrderPriority, OrderStatus
from logistics.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderDeliver,
    OrderRead,
    OrderStatusUpdate,
    OrderUpdate,
)
from logistics.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


def to_order_read(order: Order) -> OrderRead:
    return OrderRead.model_validate(
        {
            **order.model_dump(),
            "is_late": order.is_late(),
            "lead_time_days": order.lead_time_days,
        }
    )


def _reload(service: OrderService, order_id: int) -> OrderRead:
    order = service.get(order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found",
        )
    return to_order_read(order)


# -------- Listing & lookup --------


@router.get("", response_model=list[OrderRead])
def list_orders(
    order_number: str | None = None,
    customer_id: int | None = None,
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    priority: OrderPriority | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sort: str = "ordered_at",
    ascending: bool = False,
    service: OrderService = Depends(get_order_service),
):
    """
    List orders, newest first by default.

    Filters are optional and AND-combined; `order_number` matches a
    substring.
    """
    filters = (order_number, customer_id, status_filter, priority, date_from, date_to)
    if not any(f is not None for f in filters):
        orders = service.sort(service.get_all(), sort, ascending)
    else:
        orders = service.search_and_sort(
            order_number=order_number,
            customer_id=customer_id,
            status=status_filter,
            priority=priority,
            date_from=date_from,
            date_to=date_to,
            sort_field=sort,
            ascending=ascending,
        )
        if service.last_failure is not None:
            raise_for_failure(service)
    return [to_order_read(o) for o in orders]


@router.get("/late", response_model=list[OrderRead])
def list_late_orders(service: OrderService = Depends(get_order_service)):
    """Open orders whose requested delivery date has passed."""
    return [to_order_read(o) for o in service.late_orders()]


@router.get("/urgent", response_model=list[OrderRead])
def list_urgent_orders(service: OrderService = Depends(get_order_service)):
    return [to_order_read(o) for o in service.urgent_orders()]


@router.get("/by-number/{order_number}", response_model=OrderRead)
def get_order_by_number(
    order_number: str,
    service: OrderService = Depends(get_order_service),
):
    order = service.get_by_number(order_number)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_number} not found",
        )
    return to_order_read(order)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return _reload(service, order_id)


# -------- Writes --------


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
):
    """Create a PENDING order; the order number is generated."""
    order = service.create(**payload.model_dump())
    if order is None:
        raise_for_failure(service)
    return to_order_read(order)


@router.patch("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    service: OrderService = Depends(get_order_service),
):
    """Update only the provided fields of an open order."""
    order = service.update_fields(order_id, payload.model_dump(exclude_unset=True))
    if order is None:
        raise_for_failure(service)
    return to_order_read(order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: int, service: OrderService = Depends(get_order_service)):
    """Only PENDING or CANCELLED orders can be deleted."""
    if not service.delete(order_id):
        raise_for_failure(service)


# -------- Status transitions --------


@router.patch("/{order_id}/status", response_model=OrderRead)
def change_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    """
    Move an order along the workflow.

    Allowed:
      - forward: PENDING -> CONFIRMED -> PREPARING -> IN_TRANSIT -> DELIVERED
      - CANCELLED from any status except DELIVERED
    """
    if not service.change_status(
        order_id,
        payload.status,
        reason=payload.reason,
        delivered_at=payload.delivered_at,
    ):
        raise_for_failure(service)
    return _reload(service, order_id)


@router.post("/{order_id}/confirm", response_model=OrderRead)
def confirm_order(order_id: int, service: OrderService = Depends(get_order_service)):
    if not service.confirm(order_id):
        raise_for_failure(service)
    return _reload(service, order_id)


@router.post("/{order_id}/deliver", response_model=OrderRead)
def deliver_order(
    order_id: int,
    payload: OrderDeliver,
    service: OrderService = Depends(get_order_service),
):
    if not service.deliver(order_id, payload.delivered_at):
        raise_for_failure(service)
    return _reload(service, order_id)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: int,
    payload: OrderCancel,
    service: OrderService = Depends(get_order_service),
):
    if not service.cancel(order_id, payload.reason):
        raise_for_failure(service)
    return _reload(service, order_id)
