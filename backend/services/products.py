"""Admin product management: images, categories and removal.

Each handler locks the product row for the whole unit of work. Removing a
product also takes its lines out of every basket, keeping basket totals in
step, and is refused while orders still reference it.
"""
import logging
from typing import Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.basket import Basket, BasketProduct
from models.category import Category
from models.order import OrderProduct
from models.product import Product, ProductImage
from schemas.product import (
    AddProductImagesCommand,
    ProductCategoriesCommand,
    ProductOut,
    RemoveProductImagesCommand,
)
from services.actor import Actor
from utils.audit import log_handler
from utils.cancellation import CancellationToken, OperationCancelled
from utils.result import CANCELLED, FORBIDDEN, Error, ErrorKind, Result, not_found, persistence_failure
from utils.validation import validate

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND = not_found("Product.NotFound", "The product with the specified id was not found.")
PRODUCT_HAS_ORDERS = Error(
    "Product.HasOrders",
    "The product appears in placed orders and cannot be deleted.",
    ErrorKind.CONFLICT,
)


class _ProductMutation:
    """Shared unit of work for admin handlers that change one product."""

    error_code = "Product.Persistence"

    def __init__(self, db: Session):
        self._db = db

    def _run(self, product_id: int, cancel: Optional[CancellationToken], apply) -> Result:
        cancel = cancel or CancellationToken.none()
        db = self._db
        try:
            cancel.raise_if_cancelled()
            product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
            if product is None:
                db.rollback()
                return Result.failure(PRODUCT_NOT_FOUND)

            outcome = apply(product)
            if outcome.is_failure:
                db.rollback()
                return outcome

            cancel.raise_if_cancelled()
            db.commit()
            return Result.success(product)
        except OperationCancelled:
            db.rollback()
            return Result.failure(CANCELLED)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Product %s could not be updated", product_id)
            return Result.failure(persistence_failure(self.error_code))

    def _run_returning_view(self, product_id, cancel, apply) -> Result[ProductOut]:
        result = self._run(product_id, cancel, apply)
        if result.is_failure:
            return result
        return Result.success(ProductOut.model_validate(result.value))


class AddProductImagesHandler(_ProductMutation):

    error_code = "AddProductImages.Persistence"

    @log_handler
    def handle(
        self,
        product_id: int,
        images: Iterable[Mapping],
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[ProductOut]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        validation = validate(AddProductImagesCommand, {"images": list(images)}, "AddProductImages.Validation")
        if validation.is_failure:
            return validation
        command = validation.value

        def apply(product):
            new_images = [ProductImage(location=img.location, is_primary=img.is_primary) for img in command.images]
            return product.add_images(new_images)

        return self._run_returning_view(product_id, cancel, apply)


class RemoveProductImagesHandler(_ProductMutation):

    error_code = "RemoveProductImages.Persistence"

    @log_handler
    def handle(
        self,
        product_id: int,
        image_ids: Iterable[int],
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[ProductOut]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        validation = validate(RemoveProductImagesCommand, {"image_ids": list(image_ids)}, "RemoveProductImages.Validation")
        if validation.is_failure:
            return validation
        command = validation.value
        return self._run_returning_view(product_id, cancel, lambda product: product.remove_images(command.image_ids))


class ChangePrimaryImageHandler(_ProductMutation):
    """Moves the primary flag to another image of the same product."""

    error_code = "ChangePrimaryImage.Persistence"

    @log_handler
    def handle(
        self,
        product_id: int,
        image_id: int,
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[ProductOut]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        return self._run_returning_view(product_id, cancel, lambda product: product.change_primary_image(image_id))


class AddProductCategoriesHandler(_ProductMutation):

    error_code = "AddProductCategories.Persistence"

    @log_handler
    def handle(
        self,
        product_id: int,
        category_ids: Iterable[int],
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[ProductOut]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        validation = validate(ProductCategoriesCommand, {"category_ids": list(category_ids)}, "AddProductCategories.Validation")
        if validation.is_failure:
            return validation
        wanted = set(validation.value.category_ids)

        def apply(product):
            categories = self._db.query(Category).filter(Category.id.in_(wanted)).order_by(Category.id).all()
            missing = wanted - {c.id for c in categories}
            if missing:
                return Result.failure(not_found("Category.NotFound", f"Categories not found: {sorted(missing)}"))
            return product.add_categories(categories)

        return self._run_returning_view(product_id, cancel, apply)


class RemoveProductCategoriesHandler(_ProductMutation):

    error_code = "RemoveProductCategories.Persistence"

    @log_handler
    def handle(
        self,
        product_id: int,
        category_ids: Iterable[int],
        actor: Actor,
        cancel: Optional[CancellationToken] = None,
    ) -> Result[ProductOut]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        validation = validate(ProductCategoriesCommand, {"category_ids": list(category_ids)}, "RemoveProductCategories.Validation")
        if validation.is_failure:
            return validation
        command = validation.value
        return self._run_returning_view(product_id, cancel, lambda product: product.remove_categories(command.category_ids))


class DeleteProductHandler(_ProductMutation):
    """Deletes a product that no order references.

    Basket lines holding the product are removed first; a basket left without
    lines is deleted with them.
    """

    error_code = "DeleteProduct.Persistence"

    @log_handler
    def handle(self, product_id: int, actor: Actor, cancel: Optional[CancellationToken] = None) -> Result[None]:
        if not actor.is_admin:
            return Result.failure(FORBIDDEN)
        cancel = cancel or CancellationToken.none()
        db = self._db

        def apply(product):
            if db.query(OrderProduct.id).filter(OrderProduct.product_id == product.id).first() is not None:
                return Result.failure(PRODUCT_HAS_ORDERS)

            cancel.raise_if_cancelled()
            basket_ids = [row.basket_id for row in db.query(BasketProduct.basket_id).filter(BasketProduct.product_id == product.id)]
            baskets = []
            if basket_ids:
                baskets = db.query(Basket).filter(Basket.id.in_(basket_ids)).order_by(Basket.id).with_for_update().all()
            for basket in baskets:
                line = basket.line_for(product.id)
                if line is not None and basket.remove_line(line):
                    db.delete(basket)
            if baskets:
                logger.info("Removed product %s from %s basket(s)", product.id, len(baskets))

            db.delete(product)
            return Result.success()

        result = self._run(product_id, cancel, apply)
        if result.is_failure:
            return result
        return Result.success()
