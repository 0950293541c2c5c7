# logistics/routers/customers.py
from fastapi import APIRouter, Depends, HTTPException, Query, status

from logistics.dependencies import get_customer_service, get_order_service, raise_for_failure
from logistics.models.customer import CustomerStatus
from logistics.routers.orders import to_order_read
from logistics.schemas.customer import (
    CustomerCreate,
    CustomerRead,
    CustomerSuspend,
    CustomerUpdate,
)
from logistics.schemas.order import OrderRead
from logistics.services.customer_service import CustomerService
from logistics.services.order_service import OrderService

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=list[CustomerRead])
def list_customers(
    name: str | None = None,
    surname: str | None = None,
    city: str | None = None,
    status_filter: CustomerStatus | None = Query(default=None, alias="status"),
    sort: str = "name",
    ascending: bool = True,
    service: CustomerService = Depends(get_customer_service),
):
    """
    List customers.

    Without filters the cached full list is returned (sorted by `sort`);
    otherwise the filters are AND-combined.
    """
    if not any((name, surname, city, status_filter)):
        return service.sort(service.get_all(), sort, ascending)
    return service.search_and_sort(
        name=name,
        surname=surname,
        city=city,
        status=status_filter,
        sort_field=sort,
        ascending=ascending,
    )


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.create(**payload.model_dump())
    if customer is None:
        raise_for_failure(service)
    return customer


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(
    customer_id: int,
    service: CustomerService = Depends(get_customer_service),
):
    customer = service.get(customer_id)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer {customer_id} not found",
        )
    return customer


@router.patch("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    service: CustomerService = Depends(get_customer_service),
):
    """Update only the provided fields."""
    customer = service.update_fields(customer_id, payload.model_dump(exclude_unset=True))
    if customer is None:
        raise_for_failure(service)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: int,
    service: CustomerService = Depends(get_customer_service),
):
    """Delete a customer that has no open orders."""
    if not service.delete(customer_id):
        raise_for_failure(service)


@router.post("/{customer_id}/activate", response_model=CustomerRead)
def activate_customer(
    customer_id: int,
    service: CustomerService = Depends(get_customer_service),
):
    if not service.set_active(customer_id, True):
        raise_for_failure(service)
    return service.get(customer_id)


@router.post("/{customer_id}/deactivate", response_model=CustomerRead)
def deactivate_customer(
    customer_id: int,
    service: CustomerService = Depends(get_customer_service),
):
    if not service.set_active(customer_id, False):
        raise_for_failure(service)
    return service.get(customer_id)


@router.post("/{customer_id}/suspend", response_model=CustomerRead)
def suspend_customer(
    customer_id: int,
    payload: CustomerSuspend,
    service: CustomerService = Depends(get_customer_service),
):
    if not service.suspend(customer_id, payload.reason):
        raise_for_failure(service)
    return service.get(customer_id)


@router.get("/{customer_id}/orders", response_model=list[OrderRead])
def list_customer_orders(
    customer_id: int,
    customers: CustomerService = Depends(get_customer_service),
    orders: OrderService = Depends(get_order_service),
):
    if customers.get(customer_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer {customer_id} not found",
        )
    return [to_order_read(o) for o in orders.orders_for_customer(customer_id)]
