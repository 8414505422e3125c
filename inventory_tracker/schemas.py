from pydantic import BaseModel, ConfigDict, conint, condecimal, constr, field_validator
from typing import Optional
import datetime

from .models import TransactionType


class ConnectionStatus(BaseModel):
    connected: bool
    timestamp: datetime.datetime | None = None # Database server time when connected
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    database: ConnectionStatus


class ProductBase(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    description: Optional[str] = None
    price: condecimal(ge=0, max_digits=10, decimal_places=2)
    quantity: conint(ge=0) # Allows 0


class ProductCreate(ProductBase):
    pass


class ProductRead(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime.datetime
    updated_at: datetime.datetime


class QuantityAdjustment(BaseModel):
    change: int
    notes: Optional[str] = None

    @field_validator("change")
    @classmethod
    def change_must_not_be_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("change cannot be zero")
        return v


class QuantitySet(BaseModel):
    quantity: conint(ge=0)
    notes: Optional[str] = None


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: str
    quantity_change: int
    transaction_type: TransactionType
    notes: Optional[str] = None
    created_at: datetime.datetime


class ProductForm(BaseModel):
    """Raw text of the add-product form, kept so a failed submit can be redisplayed."""
    name: str = ""
    description: str = ""
    price: str = ""
    quantity: str = ""

    def to_create(self) -> ProductCreate:
        """Parses the text fields; raises pydantic.ValidationError on bad input."""
        return ProductCreate(
            name=self.name,
            description=self.description,
            price=self.price.strip(),
            quantity=self.quantity.strip(),
        )
