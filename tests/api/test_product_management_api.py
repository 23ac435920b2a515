from decimal import Decimal

from helpers import auth_headers
from models.log import Log


def _add_to_basket(client, user, product, quantity):
    return client.post(
        "/baskets",
        json={"user_id": user.id, "product": {"product_id": product.id, "quantity": quantity}},
        headers=auth_headers(user),
    )


def _images(client, product_id, user):
    return client.get(f"/products/{product_id}", headers=auth_headers(user)).json()["images"]


class TestDeleteProductEndpoint:

    def test_delete_clears_basket_lines(self, client, db, customer, admin, make_product):
        lamp = make_product(name="Desk Lamp", price="10.00", stock=10)
        chair = make_product(name="Chair", price="5.00", stock=10)
        lamp_id = lamp.id
        _add_to_basket(client, customer, lamp, 2)
        _add_to_basket(client, customer, chair, 1)

        response = client.delete(f"/products/{lamp_id}", headers=auth_headers(admin))

        assert response.status_code == 204
        assert client.get(f"/products/{lamp_id}", headers=auth_headers(admin)).status_code == 404
        basket = client.get(f"/users/{customer.id}/basket", headers=auth_headers(customer)).json()
        assert [line["product_id"] for line in basket["lines"]] == [chair.id]
        assert Decimal(basket["total_amount"]) == Decimal("5.00")
        db.expire_all()
        assert db.query(Log).filter(Log.action == "PRODUCT_DELETE").count() == 1

    def test_only_basket_line_removes_basket(self, client, customer, admin, make_product):
        lamp = make_product()
        _add_to_basket(client, customer, lamp, 1)

        assert client.delete(f"/products/{lamp.id}", headers=auth_headers(admin)).status_code == 204
        assert client.get(f"/users/{customer.id}/basket", headers=auth_headers(customer)).status_code == 404

    def test_ordered_product_cannot_be_deleted(self, client, customer, admin, make_product):
        lamp = make_product()
        client.post(
            "/orders",
            json={"user_id": customer.id, "products": [{"product_id": lamp.id, "quantity": 1}]},
            headers=auth_headers(customer),
        )

        response = client.delete(f"/products/{lamp.id}", headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "Product.HasOrders"

    def test_customer_forbidden(self, client, customer, make_product):
        assert client.delete(f"/products/{make_product().id}", headers=auth_headers(customer)).status_code == 403

    def test_unknown_product(self, client, admin):
        assert client.delete("/products/999", headers=auth_headers(admin)).status_code == 404


class TestProductImagesEndpoints:

    def test_new_primary_image_takes_over(self, client, admin, make_product):
        lamp = make_product()

        response = client.post(
            f"/products/{lamp.id}/images",
            json={"images": [{"location": "/images/lamp-top.jpg", "is_primary": True}]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        images = response.json()["images"]
        assert len(images) == 2
        assert [img["location"] for img in images if img["is_primary"]] == ["/images/lamp-top.jpg"]

    def test_two_primaries_rejected(self, client, admin, make_product):
        lamp = make_product()
        response = client.post(
            f"/products/{lamp.id}/images",
            json={"images": [
                {"location": "/a.jpg", "is_primary": True},
                {"location": "/b.jpg", "is_primary": True},
            ]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert len(_images(client, lamp.id, admin)) == 1

    def test_product_without_images_needs_a_primary(self, client, admin, make_product):
        bare = make_product(image=False)
        response = client.post(
            f"/products/{bare.id}/images",
            json={"images": [{"location": "/a.jpg", "is_primary": False}]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400

    def test_remove_secondary_image(self, client, admin, make_product):
        lamp = make_product()
        added = client.post(
            f"/products/{lamp.id}/images",
            json={"images": [{"location": "/images/lamp-side.jpg"}]},
            headers=auth_headers(admin),
        ).json()
        side_id = next(img["id"] for img in added["images"] if not img["is_primary"])

        response = client.request(
            "DELETE", f"/products/{lamp.id}/images", json={"image_ids": [side_id]}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert side_id not in [img["id"] for img in response.json()["images"]]
        assert len(response.json()["images"]) == 1

    def test_primary_image_cannot_be_removed(self, client, admin, make_product):
        lamp = make_product()
        primary_id = _images(client, lamp.id, admin)[0]["id"]

        response = client.request(
            "DELETE", f"/products/{lamp.id}/images", json={"image_ids": [primary_id]}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "Product.PrimaryImageRemoval"

    def test_remove_unknown_image(self, client, admin, make_product):
        lamp = make_product()
        response = client.request(
            "DELETE", f"/products/{lamp.id}/images", json={"image_ids": [999]}, headers=auth_headers(admin)
        )
        assert response.status_code == 404

    def test_change_primary_image(self, client, admin, make_product):
        lamp = make_product()
        added = client.post(
            f"/products/{lamp.id}/images",
            json={"images": [{"location": "/images/lamp-side.jpg"}]},
            headers=auth_headers(admin),
        ).json()
        side_id = next(img["id"] for img in added["images"] if not img["is_primary"])

        response = client.patch(f"/products/{lamp.id}/images/{side_id}/primary", headers=auth_headers(admin))

        assert response.status_code == 200
        primaries = [img["id"] for img in response.json()["images"] if img["is_primary"]]
        assert primaries == [side_id]

    def test_change_to_current_primary(self, client, admin, make_product):
        lamp = make_product()
        primary_id = _images(client, lamp.id, admin)[0]["id"]
        response = client.patch(f"/products/{lamp.id}/images/{primary_id}/primary", headers=auth_headers(admin))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "Product.ImageAlreadyPrimary"

    def test_change_to_unknown_image(self, client, admin, make_product):
        lamp = make_product()
        assert client.patch(f"/products/{lamp.id}/images/999/primary", headers=auth_headers(admin)).status_code == 404

    def test_customer_cannot_manage_images(self, client, customer, make_product):
        lamp = make_product()
        response = client.post(
            f"/products/{lamp.id}/images",
            json={"images": [{"location": "/a.jpg", "is_primary": True}]},
            headers=auth_headers(customer),
        )
        assert response.status_code == 403


class TestProductCategoriesEndpoints:

    def _category(self, client, admin, name):
        return client.post("/categories", json={"name": name}, headers=auth_headers(admin)).json()["id"]

    def test_add_then_remove(self, client, admin, make_product):
        lamp = make_product()
        lighting = self._category(client, admin, "Lighting")
        office = self._category(client, admin, "Office")

        added = client.post(
            f"/products/{lamp.id}/categories", json={"category_ids": [lighting, office]}, headers=auth_headers(admin)
        )
        assert added.status_code == 200
        assert sorted(c["name"] for c in added.json()["categories"]) == ["Lighting", "Office"]

        removed = client.request(
            "DELETE", f"/products/{lamp.id}/categories", json={"category_ids": [office]}, headers=auth_headers(admin)
        )
        assert removed.status_code == 200
        assert [c["name"] for c in removed.json()["categories"]] == ["Lighting"]

    def test_category_already_assigned(self, client, admin, make_product):
        lamp = make_product()
        lighting = self._category(client, admin, "Lighting")
        client.post(f"/products/{lamp.id}/categories", json={"category_ids": [lighting]}, headers=auth_headers(admin))

        response = client.post(
            f"/products/{lamp.id}/categories", json={"category_ids": [lighting]}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "Product.CategoryAlreadyAssigned"

    def test_unknown_category(self, client, admin, make_product):
        lamp = make_product()
        response = client.post(f"/products/{lamp.id}/categories", json={"category_ids": [77]}, headers=auth_headers(admin))
        assert response.status_code == 404

    def test_remove_unassigned_category(self, client, admin, make_product):
        lamp = make_product()
        lighting = self._category(client, admin, "Lighting")
        response = client.request(
            "DELETE", f"/products/{lamp.id}/categories", json={"category_ids": [lighting]}, headers=auth_headers(admin)
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "Product.CategoryNotAssigned"

    def test_empty_category_list(self, client, admin, make_product):
        lamp = make_product()
        response = client.post(f"/products/{lamp.id}/categories", json={"category_ids": []}, headers=auth_headers(admin))
        assert response.status_code == 400
