# backend/routes/orders.py
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from schemas.order import OrderCreatePayload, OrderResponse, OrdersPage
from services.actor import Actor
from services.orders import CreateOrderHandler, GetOrderHandler, ListOrdersForUserHandler, ListOrdersHandler
from utils.audit import write_log
from utils.cancellation import CancellationToken
from utils.result import raise_for_failure
from utils.tokenJWT import get_actor

router = APIRouter(tags=["Orders"])


def _request_token() -> CancellationToken:
    return CancellationToken.with_timeout(settings.REQUEST_TIMEOUT_SECONDS)


# Place an order directly (independent of the basket)
@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    handler = CreateOrderHandler(db, deduct_stock=settings.ORDER_DEDUCTS_STOCK)
    result = handler.handle(
        payload.user_id,
        [p.model_dump() for p in payload.products],
        actor,
        _request_token(),
    )
    raise_for_failure(result)

    order = result.value
    write_log(db, user_id=actor.user_id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
              ip=request.client.host if request.client else None,
              meta={"order_id": order.order_id, "total": str(order.total_amount)})
    return order


# List every order, newest first (admin only)
@router.get("/orders", response_model=OrdersPage)
def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = ListOrdersHandler(db).handle(page, page_size, actor, _request_token())
    raise_for_failure(result)
    return result.value


# Get details of a specific order
@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = GetOrderHandler(db).handle(order_id, actor, _request_token())
    raise_for_failure(result)
    return result.value


# List a user's orders, newest first
@router.get("/users/{user_id}/orders", response_model=OrdersPage)
def list_orders_for_user(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = ListOrdersForUserHandler(db).handle(user_id, page, page_size, actor, _request_token())
    raise_for_failure(result)
    return result.value
