#!/usr/bin/env python3
"""
Seed script creating demo users and listings, and printing an access token
for each user so the API can be exercised by hand
"""
import os
import sys
sys.path.insert(0, os.path.dirname(__file__))

from decimal import Decimal

from database.connection import get_db, create_tables
from models.user import User
from schemas.product import ProductCreate
from services.auth import create_access_token
from services.product import create_product

def create_sample_marketplace():
    """Create sample users and products for testing"""
    create_tables()

    db = next(get_db())

    try:
        users_data = [
            {
                "external_id": "demo-seller",
                "username": "lena.seller",
                "email": "lena@campus.example",
                "first_name": "Lena",
                "last_name": "Hofmann",
            },
            {
                "external_id": "demo-buyer",
                "username": "tom.buyer",
                "email": "tom@campus.example",
                "first_name": "Tom",
                "last_name": "Becker",
            },
        ]

        products_data = [
            {
                "title": "Calculus textbook, 8th edition",
                "description": "Some highlighting in the first chapters, otherwise like new",
                "price_amount": Decimal("25.00"),
                "category": "Books",
                "condition": "Good",
                "location_city": "Berlin",
                "location_country": "Germany",
            },
            {
                "title": "Desk lamp",
                "description": "LED desk lamp with adjustable arm",
                "price_amount": Decimal("12.50"),
                "category": "Furniture",
                "condition": "Like new",
                "location_city": "Berlin",
                "location_country": "Germany",
            },
        ]

        users = []
        for user_data in users_data:
            user = db.query(User).filter(User.external_id == user_data["external_id"]).first()
            if not user:
                user = User(**user_data)
                db.add(user)
                db.commit()
                db.refresh(user)
                print(f"Created user: {user.display_name}")
            else:
                print(f"User already exists: {user.display_name}")
            users.append(user)

        seller = users[0]
        existing_titles = {p.title for p in seller.products}
        for product_data in products_data:
            if product_data["title"] in existing_titles:
                print(f"Product already exists: {product_data['title']}")
                continue
            product = create_product(db=db, product_data=ProductCreate(**product_data), seller_id=seller.id)
            print(f"Created product: {product.title} ({product.id})")

        print("\nAccess tokens:")
        for user in users:
            token = create_access_token({"sub": user.id})
            print(f"  {user.username} ({user.id})")
            print(f"    {token}")

    except Exception as e:
        print(f"Error during seeding: {str(e)}")
        db.rollback()
    finally:
        db.close()

if __name__ == "__main__":
    print("Starting marketplace data seeding...")
    create_sample_marketplace()
    print("Marketplace seeding completed!")
