from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update, func
from . import schemas, models
from .errors import StoreError, ProductNotFoundError, NegativeQuantityError
from .models import TransactionType
import logging

logger = logging.getLogger(__name__)

# Driver-level connect failures (e.g. refused sockets) are not always wrapped by SQLAlchemy
DATABASE_ERRORS = (SQLAlchemyError, OSError)


async def check_connection(db: AsyncSession) -> schemas.ConnectionStatus:
    """
    Probes the database with SELECT CURRENT_TIMESTAMP.
    Never raises: failures are reported through the returned status.
    """
    try:
        result = await db.execute(select(func.current_timestamp()))
        timestamp = result.scalar_one()
        logger.debug(f"Database reachable, server time {timestamp}")
        return schemas.ConnectionStatus(connected=True, timestamp=timestamp)
    except Exception as e:
        logger.error(f"Database connection error: {e}")
        return schemas.ConnectionStatus(connected=False, error=str(e) or "Unknown database error")


async def list_products(db: AsyncSession) -> list[models.Product]:
    try:
        result = await db.execute(select(models.Product).order_by(models.Product.name))
        return list(result.scalars().all())
    except DATABASE_ERRORS as e:
        logger.exception("Error fetching products")
        raise StoreError(f"Could not fetch products: {e}") from e


async def get_product(db: AsyncSession, product_id: str) -> models.Product | None:
    try:
        return await db.get(models.Product, product_id, populate_existing=True)
    except DATABASE_ERRORS as e:
        logger.exception(f"Error fetching product '{product_id}'")
        raise StoreError(f"Could not fetch product: {e}") from e


async def create_product(db: AsyncSession, product: schemas.ProductCreate) -> models.Product:
    """Inserts a product and returns it with its server-assigned id and timestamps."""
    db_product = models.Product(**product.model_dump())
    db.add(db_product)
    try:
        await db.commit()
        await db.refresh(db_product)
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error adding product '{product.name}'")
        raise StoreError(f"Could not add product: {e}") from e
    logger.info(f"Created product '{db_product.name}' ({db_product.id}) with quantity {db_product.quantity}")
    return db_product


async def set_product_quantity(db: AsyncSession, product_id: str, quantity: int, commit: bool = True) -> models.Product:
    """
    Overwrites the stored quantity. Does not record a transaction; callers
    that need an audit row use record_transaction in the same commit.
    """
    stmt = (
        update(models.Product)
        .where(models.Product.id == product_id)
        .values(quantity=quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        if result.rowcount == 0:
            await db.rollback()
            raise ProductNotFoundError(product_id)
        if commit:
            await db.commit()
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error updating quantity of product '{product_id}'")
        raise StoreError(f"Could not update product quantity: {e}") from e
    logger.info(f"Set quantity of product '{product_id}' to {quantity}")
    return await get_product(db, product_id)


async def record_transaction(
    db: AsyncSession,
    product_id: str,
    quantity_change: int,
    kind: TransactionType | str | None = None,
    notes: str | None = None,
    commit: bool = True,
) -> bool:
    """
    Appends one audit row for a quantity change. The kind must agree with the
    sign of the change; it is derived from the sign when omitted.
    With commit=False the row is only flushed, so it joins the caller's
    database transaction.
    """
    derived = TransactionType.for_change(quantity_change)
    if kind is not None and TransactionType(kind) != derived:
        raise ValueError(f"Transaction type '{TransactionType(kind).value}' does not match change {quantity_change}")

    db.add(models.InventoryTransaction(
        product_id=product_id,
        quantity_change=quantity_change,
        transaction_type=derived,
        notes=notes,
    ))
    try:
        if commit:
            await db.commit()
        else:
            await db.flush()
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error adding transaction for product '{product_id}'")
        raise StoreError(f"Could not record transaction: {e}") from e
    logger.debug(f"Recorded {derived.value} of {abs(quantity_change)} for product '{product_id}'")
    return True


def default_note(change: int) -> str:
    kind = TransactionType.for_change(change)
    return f"Manual {kind.value} of {abs(change)} units"


async def adjust_quantity(db: AsyncSession, product_id: str, change: int, notes: str | None = None) -> models.Product:
    """
    Adds `change` to the stored quantity and records the matching transaction
    in one database transaction.

    The increment happens in SQL and only when the result stays non-negative,
    so concurrent adjustments never overwrite each other.
    """
    TransactionType.for_change(change)
    stmt = (
        update(models.Product)
        .where(models.Product.id == product_id)
        .where(models.Product.quantity + change >= 0)
        .values(quantity=models.Product.quantity + change, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        if result.rowcount == 0:
            exists = await db.scalar(select(models.Product.id).where(models.Product.id == product_id))
            await db.rollback()
            if exists is None:
                logger.warning(f"Attempted to adjust non-existent product '{product_id}'")
                raise ProductNotFoundError(product_id)
            logger.warning(f"Rejected change {change} for product '{product_id}': quantity would go negative")
            raise NegativeQuantityError(product_id, change)
        await record_transaction(db, product_id, change, notes=notes or default_note(change), commit=False)
        await db.commit()
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error adjusting quantity of product '{product_id}'")
        raise StoreError(f"Could not update product quantity: {e}") from e
    logger.info(f"Adjusted quantity of product '{product_id}' by {change}")
    return await get_product(db, product_id)


async def reconcile_quantity(db: AsyncSession, product_id: str, quantity: int, notes: str | None = None) -> models.Product:
    """
    Stocktake: sets an absolute quantity and records the difference from the
    previous value as a transaction, both in one commit.
    """
    try:
        current = await db.scalar(
            select(models.Product.quantity).where(models.Product.id == product_id).with_for_update()
        )
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error reading quantity of product '{product_id}'")
        raise StoreError(f"Could not read product quantity: {e}") from e
    if current is None:
        await db.rollback()
        raise ProductNotFoundError(product_id)

    difference = quantity - current
    await set_product_quantity(db, product_id, quantity, commit=False)
    if difference:
        await record_transaction(db, product_id, difference, notes=notes or f"Stocktake: {current} -> {quantity}", commit=False)
    try:
        await db.commit()
    except DATABASE_ERRORS as e:
        await db.rollback()
        logger.exception(f"Error committing stocktake of product '{product_id}'")
        raise StoreError(f"Could not update product quantity: {e}") from e
    return await get_product(db, product_id)


async def list_transactions(db: AsyncSession, product_id: str, limit: int = 50) -> list[models.InventoryTransaction]:
    stmt = (
        select(models.InventoryTransaction)
        .where(models.InventoryTransaction.product_id == product_id)
        .order_by(models.InventoryTransaction.created_at.desc(), models.InventoryTransaction.id.desc())
        .limit(limit)
    )
    try:
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except DATABASE_ERRORS as e:
        logger.exception(f"Error fetching transactions for product '{product_id}'")
        raise StoreError(f"Could not fetch transactions: {e}") from e
