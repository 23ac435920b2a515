from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

# Request schema for a product line inside an upsert request
class BasketProductIn(BaseModel):
    product_id: int
    quantity: int

# Request schema for adding / merging a product into a user's basket
class BasketUpsertPayload(BaseModel):
    user_id: int
    product: BasketProductIn

# Request schema for setting a basket line to an exact quantity
class BasketLineQuantityPayload(BaseModel):
    quantity: int


# Commands validated inside the handlers (rule violations become a 400 with one message)
class UpsertBasketCommand(BaseModel):
    user_id: int
    product_id: int
    quantity: int = Field(gt=0)

class SetBasketLineQuantityCommand(BaseModel):
    quantity: int = Field(ge=0)


# Response schema for a single basket line
class BasketLineOut(BaseModel):
    basket_product_id: int
    product_id: int
    name: str
    description: str
    price: Decimal
    quantity: int
    primary_image_id: Optional[int] = None
    image_location: Optional[str] = None

# Read projection of a basket
class BasketOut(BaseModel):
    basket_id: int
    user_id: int
    lines: List[BasketLineOut]
    created_at: datetime
    total_amount: Decimal
    last_modified: datetime

    model_config = ConfigDict(from_attributes=True)
