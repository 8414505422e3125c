from fastapi import FastAPI, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging
from contextlib import asynccontextmanager

from . import crud, schemas, config, views
from .database import get_db_session, engine, Base
from .errors import StoreError, ProductNotFoundError, NegativeQuantityError

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger(__name__)


# Tables are created at startup; there is no migration tool
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Inventory Tracker starting up...")
    logger.info("Checking/Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables check complete.")
    yield
    logger.info("Inventory Tracker shutting down...")
    await engine.dispose()

app = FastAPI(
    title="Inventory Tracker",
    description="Lists products, adds new products and adjusts stock quantities.",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(views.router)


def _store_unavailable(e: StoreError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@app.get("/health", response_model=schemas.HealthResponse, tags=["Monitoring"], summary="Health Check")
async def health_check(db: AsyncSession = Depends(get_db_session)):
    connection = await crud.check_connection(db)
    return schemas.HealthResponse(status="healthy" if connection.connected else "degraded", database=connection)


@app.get(
    "/api/connection",
    response_model=schemas.ConnectionStatus,
    tags=["Monitoring"],
    summary="Check Database Connection"
)
async def connection_status(db: AsyncSession = Depends(get_db_session)):
    return await crud.check_connection(db)


@app.get(
    "/api/products",
    response_model=list[schemas.ProductRead],
    tags=["Products"],
    summary="List Products"
)
async def list_products(db: AsyncSession = Depends(get_db_session)):
    """Returns every product ordered by name."""
    try:
        return await crud.list_products(db)
    except StoreError as e:
        raise _store_unavailable(e)


@app.post(
    "/api/products",
    response_model=schemas.ProductRead,
    status_code=status.HTTP_201_CREATED,
    tags=["Products"],
    summary="Create Product"
)
async def create_product(product: schemas.ProductCreate, db: AsyncSession = Depends(get_db_session)):
    try:
        return await crud.create_product(db, product)
    except StoreError as e:
        raise _store_unavailable(e)


@app.get(
    "/api/products/{product_id}",
    response_model=schemas.ProductRead,
    tags=["Products"],
    summary="Get Product Details"
)
async def read_product(product_id: str, db: AsyncSession = Depends(get_db_session)):
    try:
        db_product = await crud.get_product(db, product_id)
    except StoreError as e:
        raise _store_unavailable(e)
    if db_product is None:
        logger.warning(f"Product requested but not found: {product_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return db_product


@app.post(
    "/api/products/{product_id}/adjustments",
    response_model=schemas.ProductRead,
    tags=["Inventory"],
    summary="Adjust Product Quantity"
)
async def adjust_product_quantity(
    product_id: str,
    adjustment: schemas.QuantityAdjustment,
    db: AsyncSession = Depends(get_db_session)
):
    """
    Adds a signed change to the product's quantity and records the matching
    inventory transaction atomically. Changes that would take the quantity
    below zero are rejected with 409.
    """
    try:
        return await crud.adjust_quantity(db, product_id, adjustment.change, notes=adjustment.notes)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    except NegativeQuantityError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreError as e:
        raise _store_unavailable(e)


@app.put(
    "/api/products/{product_id}/quantity",
    response_model=schemas.ProductRead,
    tags=["Inventory"],
    summary="Set Counted Quantity"
)
async def set_product_quantity(
    product_id: str,
    stocktake: schemas.QuantitySet,
    db: AsyncSession = Depends(get_db_session)
):
    """Overwrites the quantity with a counted value and logs the difference."""
    try:
        return await crud.reconcile_quantity(db, product_id, stocktake.quantity, notes=stocktake.notes)
    except ProductNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    except StoreError as e:
        raise _store_unavailable(e)


@app.get(
    "/api/products/{product_id}/transactions",
    response_model=list[schemas.TransactionRead],
    tags=["Inventory"],
    summary="List Inventory Transactions"
)
async def list_product_transactions(product_id: str, db: AsyncSession = Depends(get_db_session)):
    """Newest first; limited to TRANSACTIONS_PAGE_SIZE rows."""
    try:
        if await crud.get_product(db, product_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        return await crud.list_transactions(db, product_id, limit=config.TRANSACTIONS_PAGE_SIZE)
    except StoreError as e:
        raise _store_unavailable(e)
