import enum
import uuid

from sqlalchemy import Column, Integer, String, Text, Numeric, TIMESTAMP, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class TransactionType(str, enum.Enum):
    ADDITION = "addition"
    REMOVAL = "removal"

    @classmethod
    def for_change(cls, quantity_change: int) -> "TransactionType":
        """Kind of a stock movement, taken from the sign of the change."""
        if quantity_change == 0:
            raise ValueError("quantity_change must be non-zero")
        return cls.ADDITION if quantity_change > 0 else cls.REMOVAL


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='products_quantity_non_negative'),
        CheckConstraint('price >= 0', name='products_price_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}', quantity={self.quantity})>"


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True) # Insertion order of the audit log
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    quantity_change = Column(Integer, nullable=False)
    transaction_type = Column(
        Enum(
            TransactionType,
            name="transaction_type",
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        nullable=False
    )
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint('quantity_change <> 0', name='inventory_transactions_change_non_zero'),
    )

    def __repr__(self):
        return (
            f"<InventoryTransaction(product_id='{self.product_id}', "
            f"quantity_change={self.quantity_change}, type='{self.transaction_type.value}')>"
        )
