from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from core.response import success_response
from models.product import Product
from models.user import User
from schemas.product import ProductCreate, ProductUpdate, ProductResponse
from services.product import (
    create_product,
    get_product_or_404,
    update_product,
    delete_product,
)
from routers.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", status_code=status.HTTP_201_CREATED)
def create_user_product(
    product_data: ProductCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new listing owned by the caller"""
    product = create_product(db=db, product_data=product_data, seller_id=current_user.id)
    return success_response(
        data=ProductResponse.model_validate(product).model_dump(mode="json"),
        message="Product created successfully"
    )

@router.get("/my-products")
def get_my_products(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    products = (
        db.query(Product)
        .filter(Product.seller_id == current_user.id, Product.is_active == True)
        .order_by(Product.created_at.desc())
        .all()
    )
    return success_response(
        data=[ProductResponse.model_validate(p).model_dump(mode="json") for p in products],
        message=f"Retrieved {len(products)} products successfully"
    )

@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = get_product_or_404(db, product_id)
    return success_response(
        data=ProductResponse.model_validate(product).model_dump(mode="json"),
        message="Product retrieved successfully"
    )

@router.put("/{product_id}")
def update_user_product(
    product_id: str,
    product_data: ProductUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Seller's direct edit; send expected_version to guard against concurrent changes"""
    product = update_product(db=db, product_id=product_id, product_data=product_data, seller_id=current_user.id)
    return success_response(
        data=ProductResponse.model_validate(product).model_dump(mode="json"),
        message="Product updated successfully"
    )

@router.delete("/{product_id}")
def delete_user_product(
    product_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    product = delete_product(db=db, product_id=product_id, seller_id=current_user.id)
    return success_response(data={"id": product.id}, message="Product deleted successfully")
