from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import update, and_
from typing import Optional
from datetime import datetime
import logging

from models.product import Product, ProductStatus
from models.transaction import Transaction, TransactionStatus
from models.user import User
from schemas.product import ProductCreate, ProductUpdate
from core.config import settings
from core.exceptions import (
    AuthorizationError,
    BaseCustomException,
    ConflictError,
    ResourceNotFoundError,
)
from core.validators import is_valid_id

logger = logging.getLogger(__name__)

def create_product(db: Session, product_data: ProductCreate, seller_id: str) -> Product:
    """Create a new listing for a seller"""
    try:
        seller = db.query(User).filter(User.id == seller_id).first()
        if not seller:
            raise ResourceNotFoundError("User", seller_id)

        product = Product(
            seller_id=seller_id,
            title=product_data.title,
            description=product_data.description,
            price_amount=product_data.price_amount,
            price_currency=product_data.price_currency or settings.DEFAULT_CURRENCY,
            category=product_data.category,
            condition=product_data.condition,
            images=list(product_data.images or []),
            location_city=product_data.location_city,
            location_country=product_data.location_country,
            status=ProductStatus.AVAILABLE,
            saves=0,
        )

        db.add(product)
        db.commit()
        db.refresh(product)

        logger.info(f"Product created: {product.id} by seller {seller_id}")
        return product

    except BaseCustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating product: {str(e)}")
        raise

def get_product_by_id(db: Session, product_id: str) -> Optional[Product]:
    """Get a product by ID"""
    if not is_valid_id(product_id):
        return None
    return db.query(Product).filter(Product.id == product_id).first()

def get_active_product(db: Session, product_id: str) -> Optional[Product]:
    """Get a product that has not been soft-deleted"""
    product = get_product_by_id(db, product_id)
    if product is None or not product.is_active:
        return None
    return product

def get_product_or_404(db: Session, product_id: str) -> Product:
    product = get_active_product(db, product_id)
    if not product:
        raise ResourceNotFoundError("Product", str(product_id))
    return product

def set_product_status(
    db: Session,
    product_id: str,
    new_status: ProductStatus,
    expected_status: Optional[ProductStatus] = None
) -> bool:
    """
    Write a product's status with a single conditional UPDATE.

    When expected_status is given the write only lands if the product is
    currently in that status (compare-and-swap). The version counter is bumped
    so concurrent ORM edits of the same product fail their version check.
    The caller owns the commit. Returns True if a row was updated.
    """
    conditions = [Product.id == product_id]
    if expected_status is not None:
        conditions.append(Product.status == expected_status)

    result = db.execute(
        update(Product)
        .where(and_(*conditions))
        .values(status=new_status, version=Product.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0

def _get_owned_product(db: Session, product_id: str, seller_id: str) -> Product:
    product = get_product_or_404(db, product_id)
    if product.seller_id != seller_id:
        raise AuthorizationError("Only the seller can modify this product")
    return product

def update_product(db: Session, product_id: str, product_data: ProductUpdate, seller_id: str) -> Product:
    """Seller's direct edit, guarded by the product's version counter"""
    product = _get_owned_product(db, product_id, seller_id)

    changes = product_data.dict(exclude_unset=True)
    expected_version = changes.pop("expected_version", None)
    if expected_version is not None and expected_version != product.version:
        raise ConflictError(
            "Product was modified concurrently",
            details={"expected_version": expected_version, "current_version": product.version}
        )

    try:
        for field, value in changes.items():
            setattr(product, field, value)
        # Always emit the UPDATE so the version check runs even for no-op values
        product.updated_at = datetime.utcnow()

        db.commit()
        db.refresh(product)

        logger.info(f"Product updated: {product.id} by seller {seller_id}")
        return product

    except StaleDataError:
        db.rollback()
        logger.warning(f"Stale product edit rejected: {product_id}")
        raise ConflictError("Product was modified concurrently", details={"product_id": product_id})
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating product: {str(e)}")
        raise

def delete_product(db: Session, product_id: str, seller_id: str) -> Product:
    """Soft delete a listing; refused while a non-canceled transaction references it"""
    product = _get_owned_product(db, product_id, seller_id)

    blocking = db.query(Transaction).filter(
        Transaction.product_id == product.id,
        Transaction.status != TransactionStatus.CANCELED
    ).count()
    if blocking:
        raise ConflictError(
            "Product has transactions that are not canceled",
            details={"product_id": product.id, "transactions": blocking}
        )

    try:
        product.is_active = False
        db.commit()
        db.refresh(product)

        logger.info(f"Product deleted: {product.id} by seller {seller_id}")
        return product

    except StaleDataError:
        db.rollback()
        raise ConflictError("Product was modified concurrently", details={"product_id": product_id})
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting product: {str(e)}")
        raise
