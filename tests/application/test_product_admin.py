from decimal import Decimal

from helpers import actor_for
from models.basket import Basket, BasketProduct
from models.category import Category
from models.product import Product, ProductImage
from services.baskets import UpsertBasketHandler
from services.orders import CreateOrderHandler
from services.products import (
    AddProductCategoriesHandler,
    AddProductImagesHandler,
    ChangePrimaryImageHandler,
    DeleteProductHandler,
    RemoveProductImagesHandler,
)
from utils.cancellation import CancellationToken
from utils.result import ErrorKind


def _fill_basket(db, user, *lines):
    handler = UpsertBasketHandler(db)
    view = None
    for product, quantity in lines:
        view = handler.handle(user.id, product.id, quantity, actor_for(user)).value
    return view


class TestDeleteProduct:

    def test_removes_lines_and_adjusts_totals(self, db, make_user, admin, make_product):
        alice, bob = make_user(), make_user()
        lamp = make_product(name="Desk Lamp", price="10.00", stock=10)
        chair = make_product(name="Chair", price="5.00", stock=10)
        alice_basket = _fill_basket(db, alice, (lamp, 2), (chair, 1))
        bob_basket = _fill_basket(db, bob, (lamp, 3))
        lamp_id = lamp.id

        result = DeleteProductHandler(db).handle(lamp_id, actor_for(admin))

        assert result.is_success
        db.expire_all()
        assert db.get(Product, lamp_id) is None
        remaining = db.get(Basket, alice_basket.basket_id)
        assert [line.product_id for line in remaining.lines] == [chair.id]
        assert remaining.total_amount == Decimal("5.00")
        # Bob's basket only held the lamp
        assert db.get(Basket, bob_basket.basket_id) is None
        assert db.query(BasketProduct).filter(BasketProduct.product_id == lamp_id).count() == 0

    def test_product_in_an_order_is_kept(self, db, customer, admin, make_product):
        lamp = make_product(stock=10)
        CreateOrderHandler(db).handle(customer.id, [{"product_id": lamp.id, "quantity": 1}], actor_for(customer))

        result = DeleteProductHandler(db).handle(lamp.id, actor_for(admin))

        assert result.error.code == "Product.HasOrders"
        assert result.error.kind is ErrorKind.CONFLICT
        db.expire_all()
        assert db.get(Product, lamp.id) is not None

    def test_customer_cannot_delete(self, db, customer, make_product):
        lamp = make_product()
        result = DeleteProductHandler(db).handle(lamp.id, actor_for(customer))
        assert result.error.kind is ErrorKind.FORBIDDEN

    def test_unknown_product(self, db, admin):
        result = DeleteProductHandler(db).handle(404, actor_for(admin))
        assert result.error.code == "Product.NotFound"

    def test_cancelled_delete_keeps_product(self, db, admin, make_product):
        lamp = make_product()
        token = CancellationToken.none()
        token.cancel()

        result = DeleteProductHandler(db).handle(lamp.id, actor_for(admin), token)

        assert result.error.kind is ErrorKind.CANCELLED
        db.expire_all()
        assert db.get(Product, lamp.id) is not None


class TestProductImages:

    def test_added_primary_demotes_previous(self, db, admin, make_product):
        lamp = make_product()

        result = AddProductImagesHandler(db).handle(
            lamp.id, [{"location": "/images/lamp-top.jpg", "is_primary": True}], actor_for(admin)
        )

        assert result.is_success
        primaries = [img.location for img in result.value.images if img.is_primary]
        assert primaries == ["/images/lamp-top.jpg"]
        assert len(result.value.images) == 2

    def test_empty_image_list_is_invalid(self, db, admin, make_product):
        lamp = make_product()
        result = AddProductImagesHandler(db).handle(lamp.id, [], actor_for(admin))
        assert result.error.code == "AddProductImages.Validation"

    def test_remove_secondary_image(self, db, admin, make_product):
        lamp = make_product()
        AddProductImagesHandler(db).handle(lamp.id, [{"location": "/images/lamp-side.jpg"}], actor_for(admin))
        side = db.query(ProductImage).filter(ProductImage.location == "/images/lamp-side.jpg").one()

        result = RemoveProductImagesHandler(db).handle(lamp.id, [side.id], actor_for(admin))

        assert result.is_success
        assert [img.location for img in result.value.images] == ["/images/desk-lamp.jpg"]
        assert db.query(ProductImage).count() == 1

    def test_change_primary_keeps_exactly_one(self, db, admin, make_product):
        lamp = make_product()
        AddProductImagesHandler(db).handle(lamp.id, [{"location": "/images/lamp-side.jpg"}], actor_for(admin))
        side = db.query(ProductImage).filter(ProductImage.location == "/images/lamp-side.jpg").one()

        result = ChangePrimaryImageHandler(db).handle(lamp.id, side.id, actor_for(admin))

        assert result.is_success
        db.expire_all()
        primaries = db.query(ProductImage).filter(ProductImage.is_primary.is_(True)).all()
        assert [img.id for img in primaries] == [side.id]


class TestProductCategories:

    def test_unknown_category(self, db, admin, make_product):
        lamp = make_product()
        result = AddProductCategoriesHandler(db).handle(lamp.id, [42], actor_for(admin))
        assert result.error.code == "Category.NotFound"

    def test_assign_category(self, db, admin, make_product):
        lamp = make_product()
        lighting = Category(name="Lighting")
        db.add(lighting)
        db.commit()

        result = AddProductCategoriesHandler(db).handle(lamp.id, [lighting.id], actor_for(admin))

        assert [c.name for c in result.value.categories] == ["Lighting"]
