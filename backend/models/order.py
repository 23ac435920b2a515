import enum

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from database import Base, utcnow


class OrderStatus(str, enum.Enum):
    # Placeholder for a richer lifecycle; PAID is the only reachable state
    PAID = "PAID"


# A finalized purchase. total_amount is fixed at creation and lines are never merged.
class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PAID)
    total_amount = Column(Numeric(12, 2), nullable=False)
    order_date = Column(DateTime(timezone=True), default=utcnow)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    lines = relationship(
        "OrderProduct",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderProduct.id",
    )

    @classmethod
    def create(cls, user_id: int, total_amount, lines) -> "Order":
        now = utcnow()
        return cls(
            user_id=user_id,
            status=OrderStatus.PAID,
            total_amount=total_amount,
            order_date=now,
            last_modified=now,
            lines=list(lines),
        )


class OrderProduct(Base):
    __tablename__ = "order_products"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="lines")
    product = relationship("Product")

    @classmethod
    def create(cls, product, quantity: int) -> "OrderProduct":
        return cls(product=product, product_id=product.id, quantity=quantity, last_modified=utcnow())
