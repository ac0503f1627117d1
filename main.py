import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, configure_logging, load_settings
from database import (
    PRODUCTS,
    USERS,
    check_connection,
    connect,
    ensure_indexes,
    get_collection,
    get_db,
    serialize_doc,
)
from schemas import Product
from security import BasicAuthMiddleware, BodySizeLimitMiddleware, OriginCorsMiddleware

logger = logging.getLogger("catalog.products")
auth_logger = logging.getLogger("catalog.auth")
access_logger = logging.getLogger("catalog.http")

DEFAULT_MIME_TYPE = "image/jpeg"

router = APIRouter()


# Request models. Fields are optional; handlers check the required ones.
class ProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[float] = None
    image_base64: Optional[str] = Field(None, alias="imageBase64")
    image_mime_type: Optional[str] = Field(None, alias="imageMimeType")


class LoginInput(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


# Utilities

def image_data_uri(doc: dict) -> str:
    mime = doc.get("imageMimeType") or DEFAULT_MIME_TYPE
    return f"data:{mime};base64,{doc.get('imageBase64')}"


# Routes
@router.get("/", response_class=PlainTextResponse)
def health():
    return "OK"


# Products
@router.get("/api/products")
def list_products(db: Optional[Database] = Depends(get_db)):
    try:
        cursor = get_collection(db, PRODUCTS).find().sort("createdAt", -1)
        items = [{**serialize_doc(d), "image": image_data_uri(d)} for d in cursor]
    except Exception as e:
        logger.error("[GET] %s", e)
        raise HTTPException(status_code=500, detail="Error fetching products")
    return {"items": items}


@router.post("/api/products", status_code=201)
def create_product(payload: ProductIn, db: Optional[Database] = Depends(get_db)):
    if not payload.name or not payload.price or not payload.image_base64:
        raise HTTPException(status_code=400, detail="Missing required fields")

    product = Product(
        name=payload.name,
        price=payload.price,
        stock=payload.stock if payload.stock is not None else 0,
        image_base64=payload.image_base64,
        image_mime_type=payload.image_mime_type or DEFAULT_MIME_TYPE,
    )
    doc = product.to_document()
    try:
        res = get_collection(db, PRODUCTS).insert_one(doc)
    except Exception as e:
        logger.error("[CREATE] %s", e)
        raise HTTPException(status_code=500, detail="Error creating product")

    logger.info("[CREATE] %s %s", res.inserted_id, product.name)
    return serialize_doc({**doc, "_id": res.inserted_id})


@router.delete("/api/products/{product_id}")
def delete_product(product_id: str, db: Optional[Database] = Depends(get_db)):
    try:
        deleted = get_collection(db, PRODUCTS).find_one_and_delete({"_id": ObjectId(product_id)})
    except Exception as e:
        logger.error("[DELETE] %s", e)
        raise HTTPException(status_code=500, detail="Error deleting product")
    if not deleted:
        raise HTTPException(status_code=404, detail="Product not found")

    logger.info("[DELETE] %s", deleted["_id"])
    return {"ok": True}


# Auth
@router.post("/api/login")
def login(payload: LoginInput, db: Optional[Database] = Depends(get_db)):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Missing credentials")

    try:
        user = get_collection(db, USERS).find_one({"username": payload.username})
    except Exception as e:
        auth_logger.error("Login lookup failed: %s", e)
        raise HTTPException(status_code=500, detail="Server error")

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    # TODO: store password hashes and verify them with passlib instead of comparing plaintext
    if user.get("password") != payload.password:
        auth_logger.info("Incorrect password for %s", payload.username)
        raise HTTPException(status_code=401, detail="Incorrect password")

    auth_logger.info("Login successful for %s", payload.username)
    return {"message": "Login successful", "token": f"ok-{user['_id']}"}


# Error bodies are always {"error": "..."}
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


def create_app(settings: Settings, db: Optional[Database] = None) -> FastAPI:
    """Build the API.

    When no database is passed one is opened from the settings and checked at
    startup. A failed check is logged and the app keeps serving.
    """
    if db is None:
        db = connect(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.db is not None and await run_in_threadpool(check_connection, app.state.db):
            await run_in_threadpool(ensure_indexes, app.state.db)
        yield

    app = FastAPI(title="Product Catalog API", lifespan=lifespan)
    app.state.db = db
    app.state.settings = settings

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    # Added innermost first: CORS runs before everything else.
    if settings.basic_auth_enabled:
        app.add_middleware(
            BasicAuthMiddleware,
            username=settings.basic_user,
            password=settings.basic_pass,
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        access_logger.info("%s %s %d %.3f ms", request.method, request.url.path, response.status_code, elapsed)
        return response

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        OriginCorsMiddleware,
        trusted_suffix=settings.trusted_origin_suffix,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=list(settings.allowed_methods),
        allow_headers=list(settings.allowed_headers),
    )
    return app


settings = load_settings()
configure_logging(settings.log_level)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    logging.getLogger("catalog").info("Running on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
