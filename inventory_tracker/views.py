"""
Browser UI: one page listing products, with an add-product form and
per-row quantity buttons.

Every mutation is a form POST answered with a redirect back to the list
(post/redirect/get), so the page always shows a fresh fetch. One-shot
notifications travel in the redirect's query string.
"""
from pathlib import Path
from decimal import Decimal
from typing import Literal
import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, schemas
from .database import get_db_session
from .errors import StoreError, ProductNotFoundError, NegativeQuantityError

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def format_price(price: Decimal) -> str:
    return f"${price:.2f}"


templates.env.filters["money"] = format_price


class Notice(BaseModel):
    level: Literal["success", "error"] = "success"
    message: str


class ProductListing(BaseModel):
    """Outcome of fetching the product list: either products or the failure."""
    products: list[schemas.ProductRead] = []
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def load_products(db: AsyncSession) -> ProductListing:
    try:
        products = await crud.list_products(db)
    except StoreError as e:
        return ProductListing(error=str(e))
    return ProductListing(products=[schemas.ProductRead.model_validate(p) for p in products])


def describe_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def _redirect_to_index(request: Request, message: str, level: str = "success") -> RedirectResponse:
    url = request.url_for("index").include_query_params(notice=message, level=level)
    return RedirectResponse(url=str(url), status_code=status.HTTP_303_SEE_OTHER)


async def render_index(
    request: Request,
    db: AsyncSession,
    form: schemas.ProductForm | None = None,
    notices: list[Notice] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    notices = list(notices or [])
    connection = await crud.check_connection(db)
    if not connection.connected:
        notices.append(Notice(level="error", message=f"Database connection failed: {connection.error}"))
    else:
        notices.append(Notice(message="Database connected successfully"))
    listing = await load_products(db)

    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "connection": connection,
            "listing": listing,
            "form": form or schemas.ProductForm(),
            "notices": notices,
        },
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse, name="index")
async def index(
    request: Request,
    notice: str | None = None,
    level: Literal["success", "error"] = "success",
    db: AsyncSession = Depends(get_db_session)
):
    notices = [Notice(level=level, message=notice)] if notice else []
    return await render_index(request, db, notices=notices)


@router.post("/products", response_class=HTMLResponse, name="add_product")
async def add_product(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    quantity: str = Form(""),
    db: AsyncSession = Depends(get_db_session)
):
    form = schemas.ProductForm(name=name, description=description, price=price, quantity=quantity)
    try:
        product = await crud.create_product(db, form.to_create())
    except ValidationError as e:
        logger.warning(f"Rejected add-product form: {e.error_count()} invalid field(s)")
        notice = Notice(level="error", message=f"Error adding product: {describe_validation_error(e)}")
        return await render_index(request, db, form=form, notices=[notice], status_code=status.HTTP_400_BAD_REQUEST)
    except StoreError as e:
        notice = Notice(level="error", message=f"Error adding product: {e}")
        return await render_index(request, db, form=form, notices=[notice], status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

    logger.info(f"Product '{product.name}' added from the UI")
    return _redirect_to_index(request, "Product added successfully")


@router.post("/products/{product_id}/adjust", name="adjust_product")
async def adjust_product(
    request: Request,
    product_id: str,
    change: int = Form(...),
    quantity: int = Form(...), # Quantity as displayed when the page was rendered
    db: AsyncSession = Depends(get_db_session)
):
    if change not in (-1, 1):
        logger.warning(f"Rejected change {change} for product '{product_id}': buttons step by one unit")
        return _redirect_to_index(request, "Error updating quantity", level="error")
    if quantity + change < 0:
        return _redirect_to_index(request, "Quantity cannot be negative", level="error")

    try:
        await crud.adjust_quantity(db, product_id, change)
    except NegativeQuantityError:
        return _redirect_to_index(request, "Quantity cannot be negative", level="error")
    except (ProductNotFoundError, StoreError, ValueError) as e:
        logger.warning(f"Quantity update failed for product '{product_id}': {e}")
        return _redirect_to_index(request, "Error updating quantity", level="error")

    return _redirect_to_index(request, "Quantity updated successfully")
