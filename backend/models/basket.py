# backend/models/basket.py
from decimal import Decimal

from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base, utcnow

# Represents the user's in-progress basket.
# total_amount is maintained incrementally by the methods below and is never re-summed.
class Basket(Base):
    __tablename__ = "baskets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    lines = relationship(
        "BasketProduct",
        back_populates="basket",
        cascade="all, delete-orphan",
        order_by="BasketProduct.id",
    )

    __table_args__ = (
        # One open basket per user
        UniqueConstraint("user_id", name="uq_baskets_user"),
    )

    @classmethod
    def create(cls, user_id: int) -> "Basket":
        now = utcnow()
        return cls(user_id=user_id, total_amount=Decimal("0"), created_at=now, last_modified=now, lines=[])

    def line_for(self, product_id: int):
        return next((line for line in self.lines if line.product_id == product_id), None)

    def add_line(self, product, quantity: int) -> "BasketProduct":
        # Caller guarantees there is no line for this product yet
        line = BasketProduct.create(product, quantity)
        self.lines.append(line)
        self._adjust_total(line.unit_price, quantity)
        return line

    def merge_into_line(self, line: "BasketProduct", additional_quantity: int) -> None:
        # Merged units are charged at the price captured when the line was created
        line.increase_quantity(additional_quantity)
        self._adjust_total(line.unit_price, additional_quantity)

    def remove_one_unit(self, line: "BasketProduct") -> bool:
        """Take one unit off ``line``; returns True when the basket is left empty."""
        line.decrease_quantity(1)
        self._adjust_total(line.unit_price, -1)
        if line.quantity == 0:
            self.lines.remove(line)
        return not self.lines

    def set_line_quantity(self, line: "BasketProduct", quantity: int) -> bool:
        """Set ``line`` to exactly ``quantity`` units; returns True when the basket is left empty."""
        delta = quantity - line.quantity
        line.update_quantity(quantity)
        self._adjust_total(line.unit_price, delta)
        if quantity == 0:
            self.lines.remove(line)
        return not self.lines

    def remove_line(self, line: "BasketProduct") -> bool:
        """Drop ``line`` entirely; returns True when the basket is left empty."""
        self._adjust_total(line.unit_price, -line.quantity)
        self.lines.remove(line)
        return not self.lines

    def _adjust_total(self, price, quantity: int) -> None:
        self.total_amount = (self.total_amount or Decimal("0")) + Decimal(price) * quantity
        self.last_modified = utcnow()


# A quantity of one product inside a basket. Never persisted with quantity 0.
class BasketProduct(Base):
    __tablename__ = "basket_products"

    id = Column(Integer, primary_key=True, index=True)
    basket_id = Column(Integer, ForeignKey("baskets.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity > 0", name="ck_basket_products_quantity"), nullable=False)
    # Unit price at the moment the line was created
    unit_price = Column(Numeric(12, 2), nullable=False)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    basket = relationship("Basket", back_populates="lines")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("basket_id", "product_id", name="uq_basket_products_basket_product"),
    )

    @classmethod
    def create(cls, product, quantity: int) -> "BasketProduct":
        return cls(
            product=product,
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
            last_modified=utcnow(),
        )

    def increase_quantity(self, amount: int) -> None:
        self.update_quantity(self.quantity + amount)

    def decrease_quantity(self, amount: int) -> None:
        self.update_quantity(max(self.quantity - amount, 0))

    def update_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.last_modified = utcnow()
