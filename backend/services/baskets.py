"""Basket use cases.

Every mutating handler runs as one unit of work on the request's session:
the rows it reads for a decision are locked (product first, then basket),
the decision and the write happen inside the same transaction, and any
failure rolls the whole unit back.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from models.basket import Basket, BasketProduct
from models.product import Product
from models.users import User
from schemas.basket import BasketLineOut, BasketOut, SetBasketLineQuantityCommand, UpsertBasketCommand
from services.actor import Actor
from utils.audit import log_handler
from utils.cancellation import CancellationToken, OperationCancelled
from utils.result import CANCELLED, FORBIDDEN, NO_CHANGES, Result, not_found, persistence_failure
from utils.validation import validate

logger = logging.getLogger(__name__)

USER_NOT_FOUND = not_found("Basket.UserNotFound", "User does not exist.")
PRODUCT_NOT_FOUND = not_found("Basket.ProductNotFound", "Product does not exist.")
BASKET_NOT_FOUND = not_found("Basket.NotFound", "Basket does not exist.")
LINE_NOT_FOUND = not_found("BasketProduct.NotFound", "Basket line does not exist.")


def basket_to_view(basket: Basket) -> BasketOut:
    lines = []
    for line in basket.lines:
        product = line.product
        image = product.primary_image
        lines.append(BasketLineOut(
            basket_product_id=line.id,
            product_id=product.id,
            name=product.name,
            description=product.description or "",
            price=line.unit_price,
            quantity=line.quantity,
            primary_image_id=image.id if image else None,
            image_location=image.location if image else None,
        ))
    return BasketOut(
        basket_id=basket.id,
        user_id=basket.user_id,
        lines=lines,
        created_at=basket.created_at,
        total_amount=basket.total_amount,
        last_modified=basket.last_modified,
    )


def _with_lines(db: Session):
    return db.query(Basket).options(
        selectinload(Basket.lines)
        .selectinload(BasketProduct.product)
        .selectinload(Product.images)
    )


class UpsertBasketHandler:
    """Adds a product to a user's basket, merging into an existing line."""

    def __init__(self, db: Session, stock_check_cumulative: bool = True, max_attempts: int = 3):
        self._db = db
        self._stock_check_cumulative = stock_check_cumulative
        self._max_attempts = max(1, max_attempts)

    @log_handler
    def handle(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[BasketOut]:
        if not actor.can_access(user_id):
            return Result.failure(FORBIDDEN)
        validation = validate(
            UpsertBasketCommand,
            {"user_id": user_id, "product_id": product_id, "quantity": quantity},
            "UpsertBasket.Validation",
        )
        if validation.is_failure:
            return validation
        command = validation.value
        cancel = cancel or CancellationToken.none()

        attempt = 0
        while True:
            attempt += 1
            try:
                return self._upsert(command, cancel)
            except IntegrityError:
                # Another request created the basket or the line first
                self._db.rollback()
                if attempt < self._max_attempts:
                    logger.warning(
                        "Concurrent basket write for user %s, retrying (attempt %s of %s)",
                        command.user_id, attempt, self._max_attempts,
                    )
                    continue
                logger.exception("Basket upsert for user %s failed after %s attempts", command.user_id, attempt)
                return Result.failure(persistence_failure("UpsertBasket.Persistence"))
            except OperationCancelled:
                self._db.rollback()
                return Result.failure(CANCELLED)
            except SQLAlchemyError:
                self._db.rollback()
                logger.exception("Basket upsert for user %s could not be committed", command.user_id)
                return Result.failure(persistence_failure("UpsertBasket.Persistence"))

    def _upsert(self, command: UpsertBasketCommand, cancel: CancellationToken) -> Result[BasketOut]:
        db = self._db

        cancel.raise_if_cancelled()
        if db.query(User.id).filter(User.id == command.user_id).first() is None:
            db.rollback()
            return Result.failure(USER_NOT_FOUND)

        cancel.raise_if_cancelled()
        product = db.query(Product).filter(Product.id == command.product_id).with_for_update().first()
        if product is None:
            db.rollback()
            return Result.failure(PRODUCT_NOT_FOUND)

        cancel.raise_if_cancelled()
        basket = db.query(Basket).filter(Basket.user_id == command.user_id).with_for_update().first()
        line = basket.line_for(product.id) if basket is not None else None

        requested = command.quantity
        if line is not None and self._stock_check_cumulative:
            requested += line.quantity
        stock = product.assert_sufficient_stock(requested)
        if stock.is_failure:
            db.rollback()
            return stock

        if basket is None:
            basket = Basket.create(command.user_id)
            db.add(basket)
        if line is not None:
            basket.merge_into_line(line, command.quantity)
        else:
            basket.add_line(product, command.quantity)

        cancel.raise_if_cancelled()
        db.commit()
        return Result.success(basket_to_view(basket))


class GetBasketHandler:

    def __init__(self, db: Session):
        self._db = db

    @log_handler
    def handle(self, basket_id: int, actor: Actor, cancel: Optional[CancellationToken] = None) -> Result[BasketOut]:
        if (cancel or CancellationToken.none()).is_cancelled:
            return Result.failure(CANCELLED)
        basket = _with_lines(self._db).filter(Basket.id == basket_id).first()
        if basket is None:
            return Result.failure(BASKET_NOT_FOUND)
        if not actor.can_access(basket.user_id):
            return Result.failure(FORBIDDEN)
        return Result.success(basket_to_view(basket))


class GetBasketForUserHandler:

    def __init__(self, db: Session):
        self._db = db

    @log_handler
    def handle(self, user_id: int, actor: Actor, cancel: Optional[CancellationToken] = None) -> Result[BasketOut]:
        if not actor.can_access(user_id):
            return Result.failure(FORBIDDEN)
        if (cancel or CancellationToken.none()).is_cancelled:
            return Result.failure(CANCELLED)
        basket = _with_lines(self._db).filter(Basket.user_id == user_id).first()
        if basket is None:
            return Result.failure(BASKET_NOT_FOUND)
        return Result.success(basket_to_view(basket))


class _BasketLineMutation:
    """Shared unit of work for handlers that change one existing basket line."""

    error_code = "BasketLine.Persistence"

    def __init__(self, db: Session):
        self._db = db

    def _run(self, line_id: int, actor: Actor, cancel: Optional[CancellationToken], apply):
        cancel = cancel or CancellationToken.none()
        db = self._db
        try:
            cancel.raise_if_cancelled()
            ref = db.query(BasketProduct.basket_id, BasketProduct.product_id).filter(BasketProduct.id == line_id).first()
            if ref is None:
                db.rollback()
                return Result.failure(LINE_NOT_FOUND)

            cancel.raise_if_cancelled()
            product = db.query(Product).filter(Product.id == ref.product_id).with_for_update().first()
            basket = db.query(Basket).filter(Basket.id == ref.basket_id).with_for_update().first()
            # Reload the line under the basket lock; it may have gone meanwhile
            line = None
            if basket is not None:
                line = db.query(BasketProduct).filter(
                    BasketProduct.id == line_id, BasketProduct.basket_id == basket.id
                ).populate_existing().first()
            if line is None:
                db.rollback()
                return Result.failure(LINE_NOT_FOUND)
            if not actor.can_access(basket.user_id):
                db.rollback()
                return Result.failure(FORBIDDEN)

            outcome = apply(basket, line, product)
            if outcome.is_failure:
                db.rollback()
                return outcome
            basket_emptied = outcome.value
            if basket_emptied:
                db.delete(basket)

            cancel.raise_if_cancelled()
            db.commit()
            if basket_emptied:
                return Result.success(None)
            return Result.success(basket_to_view(basket))
        except OperationCancelled:
            db.rollback()
            return Result.failure(CANCELLED)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Basket line %s could not be updated", line_id)
            return Result.failure(persistence_failure(self.error_code))


class DeleteBasketLineHandler(_BasketLineMutation):
    """Removes one unit from a basket line.

    The line disappears when its quantity reaches zero, and the basket goes
    with it when that was its last line.
    """

    error_code = "DeleteBasketLine.Persistence"

    @log_handler
    def handle(self, line_id: int, actor: Actor, cancel: Optional[CancellationToken] = None) -> Result[None]:
        result = self._run(
            line_id, actor, cancel,
            lambda basket, line, product: Result.success(basket.remove_one_unit(line)),
        )
        if result.is_failure:
            return result
        return Result.success()


class SetBasketLineQuantityHandler(_BasketLineMutation):
    """Sets a basket line to an exact quantity; zero removes it.

    Returns the updated basket view, or ``None`` when the basket was removed.
    """

    error_code = "SetBasketLineQuantity.Persistence"

    @log_handler
    def handle(
        self,
        line_id: int,
        quantity: int,
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[Optional[BasketOut]]:
        validation = validate(SetBasketLineQuantityCommand, {"quantity": quantity}, "SetBasketLineQuantity.Validation")
        if validation.is_failure:
            return validation
        quantity = validation.value.quantity

        def apply(basket, line, product):
            if quantity == line.quantity:
                return Result.failure(NO_CHANGES)
            if quantity > 0:
                stock = product.assert_sufficient_stock(quantity)
                if stock.is_failure:
                    return stock
            return Result.success(basket.set_line_quantity(line, quantity))

        return self._run(line_id, actor, cancel, apply)
