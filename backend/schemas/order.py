from pydantic import BaseModel, Field
from typing import List
from datetime import datetime
from decimal import Decimal


# Input schema for one ordered product
class OrderProductIn(BaseModel):
    product_id: int
    quantity: int

# Input schema for creating a new order
class OrderCreatePayload(BaseModel):
    user_id: int
    products: List[OrderProductIn]


# Commands validated inside the order handler
class OrderProductCommand(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)

class CreateOrderCommand(BaseModel):
    user_id: int
    products: List[OrderProductCommand] = Field(min_length=1)


# Output schema for an individual order line
class OrderProductOut(BaseModel):
    product_id: int
    name: str
    description: str
    price: Decimal
    quantity: int

# Output schema representing the full order details
class OrderResponse(BaseModel):
    order_id: int
    user_id: int
    products: List[OrderProductOut]
    order_date: datetime
    total_amount: Decimal
    status: str
    last_modified: datetime

# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
