# backend/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db

from routes.auth import router as auth_router
from routes.categories import router as categories_router
from routes.products import router as products_router
from routes.baskets import router as baskets_router
from routes.orders import router as orders_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create tables on start (migrations live in alembic/)
init_db()

app = FastAPI(title="Storefront API", version="1.0.0")

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router registration
app.include_router(auth_router)
app.include_router(categories_router)
app.include_router(products_router)
app.include_router(baskets_router)
app.include_router(orders_router)

@app.get("/")
def read_root():
    return {"message": "Storefront API is running"}
