"""Order use cases.

Orders are placed independently of the basket: creating one never reads or
clears the basket. Stock is only checked unless ``deduct_stock`` is enabled.
"""
import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from models.order import Order, OrderProduct
from models.product import Product
from models.users import User
from schemas.order import CreateOrderCommand, OrderProductOut, OrderResponse, OrdersPage
from services.actor import Actor
from utils.audit import log_handler
from utils.cancellation import CancellationToken, OperationCancelled
from utils.result import CANCELLED, FORBIDDEN, Result, not_found, persistence_failure
from utils.validation import validate

logger = logging.getLogger(__name__)

USER_NOT_FOUND = not_found("CreateOrder.UserNotFound", "User does not exist.")
ORDER_NOT_FOUND = not_found("Order.NotFound", "The order with the specified id was not found.")


def order_to_out(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=order.id,
        user_id=order.user_id,
        products=[
            OrderProductOut(
                product_id=line.product.id,
                name=line.product.name,
                description=line.product.description or "",
                price=line.product.price,
                quantity=line.quantity,
            )
            for line in order.lines
        ],
        order_date=order.order_date,
        total_amount=order.total_amount,
        status=order.status.value,
        last_modified=order.last_modified,
    )


def _with_lines(db: Session):
    return db.query(Order).options(selectinload(Order.lines).selectinload(OrderProduct.product))


def _page(query, page: int, page_size: int) -> OrdersPage:
    total = query.count()
    rows = (
        query.order_by(Order.order_date.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return OrdersPage(items=[order_to_out(o) for o in rows], total=total, page=page, page_size=page_size)


class CreateOrderHandler:

    def __init__(self, db: Session, deduct_stock: bool = False):
        self._db = db
        self._deduct_stock = deduct_stock

    @log_handler
    def handle(
        self,
        user_id: int,
        products: Iterable[Mapping],
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[OrderResponse]:
        if not actor.can_access(user_id):
            return Result.failure(FORBIDDEN)
        validation = validate(
            CreateOrderCommand,
            {"user_id": user_id, "products": list(products)},
            "CreateOrder.Validation",
        )
        if validation.is_failure:
            return validation
        command = validation.value
        cancel = cancel or CancellationToken.none()

        try:
            return self._create(command, cancel)
        except OperationCancelled:
            self._db.rollback()
            return Result.failure(CANCELLED)
        except SQLAlchemyError:
            self._db.rollback()
            logger.exception("Order for user %s could not be committed", command.user_id)
            return Result.failure(persistence_failure("CreateOrder.Persistence"))

    def _create(self, command: CreateOrderCommand, cancel: CancellationToken) -> Result[OrderResponse]:
        db = self._db

        cancel.raise_if_cancelled()
        if db.query(User.id).filter(User.id == command.user_id).first() is None:
            db.rollback()
            return Result.failure(USER_NOT_FOUND)

        # Same product listed twice counts against stock once, summed
        requested = {}
        for item in command.products:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        cancel.raise_if_cancelled()
        query = db.query(Product).filter(Product.id.in_(sorted(requested))).order_by(Product.id)
        if self._deduct_stock:
            query = query.with_for_update()
        products = {p.id: p for p in query.all()}

        total = Decimal("0")
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                db.rollback()
                return Result.failure(not_found("CreateOrder.ProductNotFound", f"Product {product_id} does not exist."))
            stock = product.assert_sufficient_stock(quantity)
            if stock.is_failure:
                db.rollback()
                return stock
            total += product.price * quantity

        lines = [OrderProduct.create(products[item.product_id], item.quantity) for item in command.products]
        order = Order.create(command.user_id, total, lines)
        db.add(order)

        if self._deduct_stock:
            for product_id, quantity in requested.items():
                reduced = products[product_id].reduce_stock(quantity)
                if reduced.is_failure:
                    db.rollback()
                    return reduced

        cancel.raise_if_cancelled()
        db.commit()
        return Result.success(order_to_out(order))


class GetOrderHandler:

    def __init__(self, db: Session):
        self._db = db

    @log_handler
    def handle(self, order_id: int, actor: Actor, cancel: Optional[CancellationToken] = None) -> Result[OrderResponse]:
        if (cancel or CancellationToken.none()).is_cancelled:
            return Result.failure(CANCELLED)
        order = _with_lines(self._db).filter(Order.id == order_id).first()
        if order is None:
            return Result.failure(ORDER_NOT_FOUND)
        if not actor.can_access(order.user_id):
            return Result.failure(FORBIDDEN)
        return Result.success(order_to_out(order))


class ListOrdersForUserHandler:

    def __init__(self, db: Session):
        self._db = db

    @log_handler
    def handle(
        self,
        user_id: int,
        page: int,
        page_size: int,
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[OrdersPage]:
        if not actor.can_access(user_id):
            return Result.failure(FORBIDDEN)
        if (cancel or CancellationToken.none()).is_cancelled:
            return Result.failure(CANCELLED)
        return Result.success(_page(_with_lines(self._db).filter(Order.user_id == user_id), page, page_size))


class ListOrdersHandler:
    """All orders across users, newest first. Admin only."""

    def __init__(self, db: Session):
        self._db = db

    @log_handler
    def handle(
        self,
        page: int,
        page_size: int,
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[OrdersPage]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        if (cancel or CancellationToken.none()).is_cancelled:
            return Result.failure(CANCELLED)
        return Result.success(_page(_with_lines(self._db), page, page_size))
