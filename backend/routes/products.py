# backend/routes/products.py
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session, selectinload

from config import settings
from database import get_db
from services.actor import Actor
from services.products import (
    AddProductCategoriesHandler,
    AddProductImagesHandler,
    ChangePrimaryImageHandler,
    DeleteProductHandler,
    RemoveProductCategoriesHandler,
    RemoveProductImagesHandler,
)
from utils.cancellation import CancellationToken
from utils.tokenJWT import get_actor, get_current_user, role_required
from utils.audit import write_log
from utils.result import NO_CHANGES, Result, raise_for_failure
from models.users import User, ADMIN_ROLE
from models.category import Category
from models.product import Product, ProductImage
import schemas.product as product_schemas

router = APIRouter(tags=["Products"])

# ---- HELPERS ----
def _product_query(db: Session):
    return db.query(Product).options(selectinload(Product.images), selectinload(Product.categories))

def _request_token() -> CancellationToken:
    return CancellationToken.with_timeout(settings.REQUEST_TIMEOUT_SECONDS)

def _client_ip(request: Request):
    return request.client.host if request.client else None


# ---- ENDPOINTS ----
@router.post("/products", response_model=product_schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ADMIN_ROLE)),
):

    categories = []
    if payload.category_ids:
        categories = db.query(Category).filter(Category.id.in_(payload.category_ids)).all()
        missing = set(payload.category_ids) - {c.id for c in categories}
        if missing:
            raise HTTPException(status_code=404, detail=f"Categories not found: {sorted(missing)}")

    product = Product(
        name=payload.name,
        description=payload.description,
        price=payload.price,
        stock_quantity=payload.stock_quantity,
        images=[ProductImage(location=img.location, is_primary=img.is_primary) for img in payload.images],
        categories=categories,
    )
    db.add(product)
    db.commit()
    db.refresh(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products", status="SUCCESS",
              ip=request.client.host if request.client else None, meta={"product_id": product.id})
    return product


@router.get("/products", response_model=product_schemas.ProductsPage)
def list_products(
    q: Optional[str] = Query(None, description="Search by name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _product_query(db)
    if q:
        query = query.filter(Product.name.ilike(f"%{q}%"))

    total = query.count()
    items = query.order_by(Product.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/products/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = _product_query(db).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/products/{product_id}", response_model=product_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: product_schemas.ProductEditRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(ADMIN_ROLE)),
):

    product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    changed = product.update_info(
        name=payload.name,
        description=payload.description,
        price=payload.price,
        stock_quantity=payload.stock_quantity,
    )
    if not changed:
        db.rollback()
        raise_for_failure(Result.failure(NO_CHANGES))

    db.commit()
    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products", status="SUCCESS",
              ip=request.client.host if request.client else None,
              meta={"product_id": product_id, "fields": sorted(payload.model_dump(exclude_none=True))})
    return _product_query(db).filter(Product.id == product_id).first()


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = DeleteProductHandler(db).handle(product_id, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_DELETE", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---- IMAGES ----
@router.post("/products/{product_id}/images", response_model=product_schemas.ProductOut)
def add_product_images(
    product_id: int,
    payload: product_schemas.ProductImagesPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = AddProductImagesHandler(db).handle(
        product_id, [img.model_dump() for img in payload.images], actor, _request_token()
    )
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_IMAGES_ADD", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id, "count": len(payload.images)})
    return result.value


@router.delete("/products/{product_id}/images", response_model=product_schemas.ProductOut)
def remove_product_images(
    product_id: int,
    payload: product_schemas.ProductImageIdsPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = RemoveProductImagesHandler(db).handle(product_id, payload.image_ids, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_IMAGES_REMOVE", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id, "image_ids": payload.image_ids})
    return result.value


# Exactly one image stays primary; the previous primary is demoted
@router.patch("/products/{product_id}/images/{image_id}/primary", response_model=product_schemas.ProductOut)
def change_primary_image(
    product_id: int,
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = ChangePrimaryImageHandler(db).handle(product_id, image_id, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_PRIMARY_IMAGE", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id, "image_id": image_id})
    return result.value


# ---- CATEGORIES ----
@router.post("/products/{product_id}/categories", response_model=product_schemas.ProductOut)
def add_product_categories(
    product_id: int,
    payload: product_schemas.ProductCategoryIdsPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = AddProductCategoriesHandler(db).handle(product_id, payload.category_ids, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_CATEGORIES_ADD", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id, "category_ids": payload.category_ids})
    return result.value


@router.delete("/products/{product_id}/categories", response_model=product_schemas.ProductOut)
def remove_product_categories(
    product_id: int,
    payload: product_schemas.ProductCategoryIdsPayload,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    result = RemoveProductCategoriesHandler(db).handle(product_id, payload.category_ids, actor, _request_token())
    raise_for_failure(result)

    write_log(db, user_id=actor.user_id, action="PRODUCT_CATEGORIES_REMOVE", resource="products", status="SUCCESS",
              ip=_client_ip(request), meta={"product_id": product_id, "category_ids": payload.category_ids})
    return result.value
