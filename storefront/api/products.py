import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.dependencies import get_current_seller_or_admin
from storefront.errors import DuplicateProductError, ProductNotFoundError
from storefront.models import Product, User, get_db
from storefront.schemas.notifications import NewProductNotification
from storefront.schemas.products import ProductCreateRequest, ProductResponse
from storefront.services.notification_queue import enqueue_notification

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "",
    response_model=list[ProductResponse],
    summary="List active products",
)
def list_products(
    db: Annotated[Session, Depends(get_db)],
):
    products = db.query(Product).filter(Product.is_active == True).order_by(Product.id).all()  # noqa: E712
    return [ProductResponse.model_validate(product) for product in products]


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
)
def get_product(
    product_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    product = db.query(Product).filter(Product.id == product_id, Product.is_active == True).first()  # noqa: E712
    if not product:
        raise ProductNotFoundError(product_id)
    return ProductResponse.model_validate(product)


@router.post(
    "",
    response_model=ProductResponse,
    summary="Create a product (seller or admin)",
)
def create_product(
    body: ProductCreateRequest,
    current_user: Annotated[User, Depends(get_current_seller_or_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Create a listing; optionally queue a new-arrival email to subscribed customers."""
    product = Product(
        name=body.name,
        sku=body.sku,
        description=body.description,
        price=body.price,
        stock_quantity=body.stock_quantity,
        is_active=True,
        seller_id=current_user.id,
    )
    db.add(product)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Rejected product with duplicate SKU %s", body.sku)
        raise DuplicateProductError(body.sku)

    if body.notify_subscribers:
        emails = [
            email
            for (email,) in db.query(User.email)
            .filter(User.email_subscribed == True)  # noqa: E712
            .order_by(User.id)
            .all()
        ]
        # One row per recipient so a retry only re-sends the failed address.
        for email in emails:
            enqueue_notification(
                db,
                NewProductNotification(product_id=product.id, product_name=product.name, email=email),
            )
        if emails:
            logger.info("Queued new-arrival notification for product %s (%s recipients)", product.id, len(emails))

    db.commit()
    db.refresh(product)
    return ProductResponse.model_validate(product)
