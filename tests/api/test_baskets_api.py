from decimal import Decimal

from helpers import auth_headers
from models.basket import Basket
from models.log import Log


def _upsert(client, user, product_id, quantity, as_user=None):
    return client.post(
        "/baskets",
        json={"user_id": user.id, "product": {"product_id": product_id, "quantity": quantity}},
        headers=auth_headers(as_user or user),
    )


class TestUpsertBasketEndpoint:

    def test_add_and_merge(self, client, customer, make_product):
        product = make_product(price="10.00", stock=5)

        first = _upsert(client, customer, product.id, 2)
        second = _upsert(client, customer, product.id, 3)

        assert first.status_code == 200
        assert second.status_code == 200
        body = second.json()
        assert body["basket_id"] == first.json()["basket_id"]
        assert len(body["lines"]) == 1
        assert body["lines"][0]["quantity"] == 5
        assert Decimal(body["total_amount"]) == Decimal("50.00")

    def test_stock_exceeded_returns_400_with_details(self, client, customer, make_product):
        product = make_product(name="Desk Lamp", price="10.00", stock=5)
        _upsert(client, customer, product.id, 3)

        response = _upsert(client, customer, product.id, 3)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "Product.InsufficientStock"
        assert detail["product_name"] == "Desk Lamp"
        assert detail["available"] == 5
        assert detail["requested"] == 6

    def test_zero_quantity_returns_400(self, client, customer, make_product):
        response = _upsert(client, customer, make_product().id, 0)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "UpsertBasket.Validation"

    def test_someone_elses_basket_returns_403(self, client, make_user, make_product):
        owner, intruder = make_user(), make_user()
        response = _upsert(client, owner, make_product().id, 1, as_user=intruder)
        assert response.status_code == 403

    def test_unknown_product_returns_404(self, client, customer):
        assert _upsert(client, customer, 999, 1).status_code == 404

    def test_requires_authentication(self, client, customer, make_product):
        response = client.post(
            "/baskets", json={"user_id": customer.id, "product": {"product_id": make_product().id, "quantity": 1}}
        )
        assert response.status_code in (401, 403)

    def test_invalid_token_returns_401(self, client, customer, make_product):
        response = client.post(
            "/baskets",
            json={"user_id": customer.id, "product": {"product_id": make_product().id, "quantity": 1}},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_success_is_audited(self, client, db, customer, make_product):
        _upsert(client, customer, make_product().id, 1)
        db.expire_all()
        actions = [log.action for log in db.query(Log).all()]
        assert "BASKET_UPSERT" in actions


class TestReadBasketEndpoints:

    def test_get_by_id_and_by_user(self, client, customer, make_product):
        created = _upsert(client, customer, make_product().id, 2).json()

        by_id = client.get(f"/baskets/{created['basket_id']}", headers=auth_headers(customer))
        by_user = client.get(f"/users/{customer.id}/basket", headers=auth_headers(customer))

        assert by_id.status_code == 200
        assert by_id.json() == by_user.json()
        assert by_id.json()["lines"][0]["basket_product_id"] == created["lines"][0]["basket_product_id"]

    def test_missing_basket_returns_404(self, client, customer):
        assert client.get("/baskets/42", headers=auth_headers(customer)).status_code == 404
        assert client.get(f"/users/{customer.id}/basket", headers=auth_headers(customer)).status_code == 404

    def test_other_users_basket_returns_403(self, client, make_user, make_product):
        owner, intruder = make_user(), make_user()
        created = _upsert(client, owner, make_product().id, 1).json()
        response = client.get(f"/baskets/{created['basket_id']}", headers=auth_headers(intruder))
        assert response.status_code == 403

    def test_admin_can_read_any_basket(self, client, customer, admin, make_product):
        created = _upsert(client, customer, make_product().id, 1).json()
        response = client.get(f"/baskets/{created['basket_id']}", headers=auth_headers(admin))
        assert response.status_code == 200


class TestBasketLineEndpoints:

    def test_delete_walks_quantity_down_then_removes_basket(self, client, db, customer, make_product):
        product = make_product(price="10.00")
        created = _upsert(client, customer, product.id, 2).json()
        line_id = created["lines"][0]["basket_product_id"]

        first = client.delete(f"/baskets/lines/{line_id}", headers=auth_headers(customer))
        assert first.status_code == 204
        basket = client.get(f"/baskets/{created['basket_id']}", headers=auth_headers(customer)).json()
        assert basket["lines"][0]["quantity"] == 1
        assert Decimal(basket["total_amount"]) == Decimal("10.00")

        second = client.delete(f"/baskets/lines/{line_id}", headers=auth_headers(customer))
        assert second.status_code == 204
        db.expire_all()
        assert db.query(Basket).count() == 0
        assert client.delete(f"/baskets/lines/{line_id}", headers=auth_headers(customer)).status_code == 404

    def test_delete_other_users_line_returns_403(self, client, make_user, make_product):
        owner, intruder = make_user(), make_user()
        created = _upsert(client, owner, make_product().id, 1).json()
        line_id = created["lines"][0]["basket_product_id"]
        assert client.delete(f"/baskets/lines/{line_id}", headers=auth_headers(intruder)).status_code == 403

    def test_put_sets_quantity(self, client, customer, make_product):
        created = _upsert(client, customer, make_product(price="3.00", stock=9).id, 1).json()
        line_id = created["lines"][0]["basket_product_id"]

        response = client.put(f"/baskets/lines/{line_id}", json={"quantity": 4}, headers=auth_headers(customer))

        assert response.status_code == 200
        assert response.json()["lines"][0]["quantity"] == 4
        assert Decimal(response.json()["total_amount"]) == Decimal("12.00")

    def test_put_zero_removes_basket(self, client, customer, make_product):
        created = _upsert(client, customer, make_product().id, 1).json()
        line_id = created["lines"][0]["basket_product_id"]

        response = client.put(f"/baskets/lines/{line_id}", json={"quantity": 0}, headers=auth_headers(customer))

        assert response.status_code == 204
        assert client.get(f"/users/{customer.id}/basket", headers=auth_headers(customer)).status_code == 404

    def test_put_above_stock_returns_400(self, client, customer, make_product):
        created = _upsert(client, customer, make_product(stock=2).id, 1).json()
        line_id = created["lines"][0]["basket_product_id"]
        response = client.put(f"/baskets/lines/{line_id}", json={"quantity": 3}, headers=auth_headers(customer))
        assert response.status_code == 400

    def test_put_current_quantity_is_a_conflict(self, client, customer, make_product):
        created = _upsert(client, customer, make_product(stock=5).id, 2).json()
        line_id = created["lines"][0]["basket_product_id"]
        response = client.put(f"/baskets/lines/{line_id}", json={"quantity": 2}, headers=auth_headers(customer))
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "Error.Conflict"
