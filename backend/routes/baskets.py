# backend/routes/baskets.py
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from schemas.basket import BasketLineQuantityPayload, BasketOut, BasketUpsertPayload
from services.actor import Actor
from services.baskets import (
    DeleteBasketLineHandler,
    GetBasketForUserHandler,
    GetBasketHandler,
    SetBasketLineQuantityHandler,
    UpsertBasketHandler,
)
from utils.audit import write_log
from utils.cancellation import CancellationToken
from utils.result import raise_for_failure
from utils.tokenJWT import get_actor

router = APIRouter(tags=["Baskets"])


def _request_token() -> CancellationToken:
    return CancellationToken.with_timeout(settings.REQUEST_TIMEOUT_SECONDS)

def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post("/baskets", response_model=BasketOut)
def upsert_basket(
    payload: BasketUpsertPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    handler = UpsertBasketHandler(
        db,
        stock_check_cumulative=settings.BASKET_STOCK_CHECK_CUMULATIVE,
        max_attempts=settings.BASKET_UPSERT_MAX_ATTEMPTS,
    )
    result = handler.handle(
        payload.user_id, payload.product.product_id, payload.product.quantity, actor, _request_token()
    )
    raise_for_failure(result)

    basket = result.value
    write_log(
        db,
        user_id=actor.user_id,
        action="BASKET_UPSERT",
        resource="baskets",
        status="SUCCESS",
        ip=_client_ip(request),
        meta={"basket_id": basket.basket_id, "product_id": payload.product.product_id,
              "qty": payload.product.quantity, "total": str(basket.total_amount)},
    )
    return basket


@router.get("/baskets/{basket_id}", response_model=BasketOut)
def get_basket(
    basket_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = GetBasketHandler(db).handle(basket_id, actor, _request_token())
    raise_for_failure(result)
    return result.value


@router.get("/users/{user_id}/basket", response_model=BasketOut)
def get_basket_for_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = GetBasketForUserHandler(db).handle(user_id, actor, _request_token())
    raise_for_failure(result)
    return result.value


# Removes ONE unit of the line; the line (and an emptied basket) go away at zero
@router.delete("/baskets/lines/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_basket_line(
    line_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = DeleteBasketLineHandler(db).handle(line_id, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="BASKET_LINE_DELETE", resource="baskets", status="SUCCESS",
              ip=_client_ip(request), meta={"line_id": line_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Sets the line to an exact quantity; 204 when the basket was removed
@router.put("/baskets/lines/{line_id}", response_model=BasketOut,
            responses={status.HTTP_204_NO_CONTENT: {"description": "Basket emptied and removed"}})
def set_basket_line_quantity(
    line_id: int,
    payload: BasketLineQuantityPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = SetBasketLineQuantityHandler(db).handle(line_id, payload.quantity, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="BASKET_LINE_UPDATE", resource="baskets", status="SUCCESS",
              ip=_client_ip(request), meta={"line_id": line_id, "qty": payload.quantity})
    if result.value is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result.value
