"""Errors raised by the inventory data layer."""


class InventoryError(Exception):
    """Base class for inventory failures."""


class StoreError(InventoryError):
    """The database could not be reached or a query failed."""


class ProductNotFoundError(InventoryError):
    def __init__(self, product_id: str):
        super().__init__(f"Product '{product_id}' not found")
        self.product_id = product_id


class NegativeQuantityError(InventoryError):
    def __init__(self, product_id: str, change: int):
        super().__init__("Quantity cannot be negative")
        self.product_id = product_id
        self.change = change
