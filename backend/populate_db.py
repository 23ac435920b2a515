"""Seed an admin account and a small demo catalogue.

Usage: python populate_db.py  (reads ADMIN_EMAIL / ADMIN_PASSWORD from the environment)
"""
import logging
import os
from decimal import Decimal

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from database import SessionLocal, init_db
from models.category import Category
from models.product import Product, ProductImage
from models.users import User, ADMIN_ROLE
from utils.hashing import get_password_hash

logger = logging.getLogger(__name__)

DEMO_CATALOGUE = [
    ("Accessories", [
        ("Canvas Tote", "Heavy cotton tote bag.", "18.50", 40),
        ("Leather Wallet", "Bifold wallet, six card slots.", "45.00", 25),
    ]),
    ("Kitchen", [
        ("Espresso Cup Set", "Four porcelain cups with saucers.", "32.00", 15),
        ("Chef Knife", "20 cm stainless steel blade.", "89.99", 10),
    ]),
]


def seed(db: Session, admin_email: str, admin_password: str) -> User:
    admin = db.query(User).filter(User.email == admin_email.lower()).first()
    if not admin:
        admin = User(
            email=admin_email.lower(),
            password_hash=get_password_hash(admin_password),
            role=ADMIN_ROLE,
            first_name="Store",
            last_name="Admin",
        )
        db.add(admin)
        logger.info("Created admin account %s", admin.email)

    for category_name, products in DEMO_CATALOGUE:
        category = db.query(Category).filter(Category.name == category_name).first()
        if not category:
            category = Category(name=category_name)
            db.add(category)
        for name, description, price, stock in products:
            if db.query(Product).filter(Product.name == name).first():
                continue
            slug = name.lower().replace(" ", "-")
            db.add(Product(
                name=name,
                description=description,
                price=Decimal(price),
                stock_quantity=stock,
                images=[ProductImage(location=f"/images/{slug}.jpg", is_primary=True)],
                categories=[category],
            ))

    db.commit()
    db.refresh(admin)
    return admin


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    init_db()
    session = SessionLocal()
    try:
        seed(
            session,
            os.getenv("ADMIN_EMAIL", "admin@example.com"),
            os.getenv("ADMIN_PASSWORD", "change-me-now"),
        )
    finally:
        session.close()
