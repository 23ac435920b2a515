# backend/routes/categories.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.category import Category
from models.users import User, ADMIN_ROLE
from schemas.category import CategoryCreate, CategoryResponse
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(tags=["Categories"])


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ADMIN_ROLE)),
):
    name = payload.name.strip()
    if db.query(Category).filter(func.lower(Category.name) == name.lower()).first():
        raise HTTPException(status_code=400, detail="Category already exists")

    category = Category(name=name, description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@router.get("/categories", response_model=List[CategoryResponse])
def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(Category).order_by(Category.name.asc()).all()
