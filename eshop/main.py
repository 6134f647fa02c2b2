import logging
import os
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from .db import Base, engine, get_db
from . import crud, models, schemas, uploads
from .auth import create_access_token
from .config import get_settings
from .deps import ensure_self_or_admin, get_current_claims, optional_claims, require_admin
from .errors import NotFound, ShopError, ValidationFailed
from .logging_config import setup_logging
from .payments import PaymentGateway, get_payment_gateway

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Create tables if not existing
Base.metadata.create_all(bind=engine)

app = FastAPI(title="E-shop API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(uploads.PUBLIC_PREFIX, StaticFiles(directory=settings.upload_dir), name="uploads")

api = APIRouter(prefix=settings.api_url)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s - %.1f ms", request.method, request.url.path, response.status_code, elapsed)
    return response


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "storage failure"})


def _describe(e: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())


async def _form_model(request: Request, model):
    """Validate the text fields of a multipart form against ``model``; returns (form, instance)."""
    form = await request.form()
    # empty form fields count as "not sent"
    data = {k: v for k, v in form.multi_items() if not isinstance(v, UploadFile) and v != ""}
    try:
        return form, model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(_describe(e))


def _uploaded(value) -> bool:
    return isinstance(value, UploadFile) and bool(value.filename)


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Categories --------------------
@api.get("/categories", response_model=List[schemas.CategoryRead])
async def list_categories(db: Session = Depends(get_db)):
    return crud.list_categories(db)


@api.get("/categories/{category_id}", response_model=schemas.CategoryRead)
async def get_category(category_id: int, db: Session = Depends(get_db)):
    return crud.get_category(db, category_id)


@api.post("/categories", response_model=schemas.CategoryRead)
async def create_category(category: schemas.CategoryCreate, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.create_category(db, category)


@api.put("/categories/{category_id}", response_model=schemas.CategoryRead)
async def update_category(category_id: int, changes: schemas.CategoryUpdate, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.update_category(db, category_id, changes)


@api.delete("/categories/{category_id}", response_model=schemas.MessageResponse)
async def delete_category(category_id: int, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    crud.delete_category(db, category_id)
    return schemas.MessageResponse(success=True, message="the category was deleted!")


# -------------------- Products --------------------
@api.get("/products", response_model=schemas.ProductPage)
async def list_products(
    categories: Optional[str] = Query(default=None),
    search_text: Optional[str] = Query(default=None, alias="searchText", max_length=200),
    sort: Optional[schemas.SortKey] = Query(default=None),
    page_index: List[int] = Query(default=[], alias="pageIndex"),
    db: Session = Depends(get_db),
):
    """Product listing with category/search filter, sort key and ``pageIndex=<page>&pageIndex=<size>``."""
    try:
        query = schemas.ProductQuery(categories=categories, search_text=search_text, sort=sort, page_index=page_index)
    except ValidationError as e:
        raise ValidationFailed(_describe(e))
    count, products = crud.query_products(db, query)
    return schemas.ProductPage(count=count, products=products)


@api.get("/products/productsAdmin", response_model=List[schemas.ProductRead])
async def list_all_products(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.list_all_products(db)


@api.get("/products/get/count")
async def product_count(db: Session = Depends(get_db)):
    return {"productCount": crud.count(db, models.Product)}


@api.get("/products/get/featured/{count}", response_model=List[schemas.ProductRead])
async def featured_products(count: int, db: Session = Depends(get_db)):
    if count < 0:
        raise ValidationFailed("count must not be negative")
    return crud.featured_products(db, count)


@api.get("/products/{product_id}", response_model=schemas.ProductRead)
async def get_product(product_id: int, db: Session = Depends(get_db)):
    return crud.get_product(db, product_id)


@api.post("/products", response_model=schemas.ProductRead)
async def create_product(request: Request, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    form, product = await _form_model(request, schemas.ProductCreate)
    crud.check_category(db, product.category)
    image = form.get("image")
    if not _uploaded(image):
        raise ValidationFailed("No image file in the request")
    image_url = uploads.save_image(image, str(request.base_url))
    return crud.create_product(db, product, image_url)


@api.put("/products/{product_id}", response_model=schemas.ProductRead)
async def update_product(product_id: int, request: Request, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    form, changes = await _form_model(request, schemas.ProductUpdate)
    crud.get_product(db, product_id)
    if changes.category is not None:
        crud.check_category(db, changes.category)
    image = form.get("image")
    image_url = uploads.save_image(image, str(request.base_url)) if _uploaded(image) else None
    return crud.update_product(db, product_id, changes, image_url)


@api.put("/products/gallery-images/{product_id}", response_model=schemas.ProductRead)
async def update_gallery_images(product_id: int, request: Request, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    crud.get_product(db, product_id)
    form = await request.form()
    files = [f for f in form.getlist("images") if _uploaded(f)]
    image_urls = uploads.save_gallery(files, str(request.base_url))
    return crud.set_gallery_images(db, product_id, image_urls)


@api.delete("/products/{product_id}", response_model=schemas.MessageResponse)
async def delete_product(product_id: int, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    crud.delete_product(db, product_id)
    return schemas.MessageResponse(success=True, message="the product was deleted!")


# -------------------- Users --------------------
@api.get("/users", response_model=List[schemas.UserRead])
async def list_users(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.list_users(db)


@api.get("/users/get/count")
async def user_count(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return {"userCount": crud.count(db, models.User)}


@api.get("/users/{user_id}", response_model=schemas.UserRead)
async def get_user(user_id: int, db: Session = Depends(get_db), claims: dict = Depends(get_current_claims)):
    ensure_self_or_admin(claims, user_id)
    return crud.get_user(db, user_id)


@api.post("/users/register", response_model=schemas.UserRead)
async def register(user: schemas.UserRegister, db: Session = Depends(get_db), claims: dict | None = Depends(optional_claims)):
    # only an admin may create another admin
    allow_admin = bool(claims and claims.get("isAdmin"))
    return crud.register_user(db, user, allow_admin=allow_admin)


@api.post("/users/login", response_model=schemas.LoginResponse)
async def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate(db, credentials.email, credentials.password)
    token = create_access_token(user.id, user.is_admin)
    return schemas.LoginResponse(user=user.email, token=token)


@api.put("/users/{user_id}", response_model=schemas.UserRead)
async def update_user(user_id: int, changes: schemas.UserUpdate, db: Session = Depends(get_db), claims: dict = Depends(get_current_claims)):
    ensure_self_or_admin(claims, user_id)
    if changes.is_admin is not None and not claims.get("isAdmin"):
        raise HTTPException(status_code=403, detail="forbidden: admin required to change role")
    return crud.update_user(db, user_id, changes)


@api.delete("/users/{user_id}", response_model=schemas.MessageResponse)
async def delete_user(user_id: int, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    crud.delete_user(db, user_id)
    return schemas.MessageResponse(success=True, message="the user was deleted!")


# -------------------- Orders --------------------
@api.get("/orders", response_model=List[schemas.OrderRead])
async def list_orders(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.list_orders(db)


@api.get("/orders/get/totalsales")
async def total_sales(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return {"totalSales": crud.total_sales(db)}


@api.get("/orders/get/count")
async def order_count(db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return {"orderCount": crud.count(db, models.Order)}


@api.get("/orders/get/userOrders/{user_id}", response_model=List[schemas.OrderRead])
async def user_orders(user_id: int, db: Session = Depends(get_db), claims: dict = Depends(get_current_claims)):
    ensure_self_or_admin(claims, user_id)
    return crud.user_orders(db, user_id)


@api.get("/orders/{order_id}", response_model=schemas.OrderRead)
async def get_order(order_id: int, db: Session = Depends(get_db), claims: dict = Depends(get_current_claims)):
    order = crud.get_order(db, order_id)
    # someone else's order looks the same as a missing one
    if not claims.get("isAdmin") and order.user_id != claims.get("userId"):
        raise NotFound("order not found")
    return order


@api.post("/orders", response_model=schemas.OrderRead)
async def create_order(order: schemas.OrderCreate, db: Session = Depends(get_db), claims: dict = Depends(get_current_claims)):
    ensure_self_or_admin(claims, order.user)
    return crud.create_order(db, order)


@api.post("/orders/create-checkout-session", response_model=schemas.CheckoutSession)
async def create_checkout_session(
    cart: List[schemas.LineItemIn],
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    _claims: dict = Depends(get_current_claims),
):
    line_items = crud.build_checkout_line_items(db, cart, get_settings().checkout_currency)
    # the Stripe client is blocking; keep it off the event loop
    session_id = await run_in_threadpool(gateway.create_checkout_session, line_items)
    return schemas.CheckoutSession(id=session_id)


@api.put("/orders/{order_id}", response_model=schemas.OrderRead)
async def update_order(order_id: int, changes: schemas.OrderStatusUpdate, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    return crud.update_order_status(db, order_id, changes.status)


@api.delete("/orders/{order_id}", response_model=schemas.OrderDeleteResponse)
async def delete_order(order_id: int, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
    removed = crud.delete_order(db, order_id)
    return schemas.OrderDeleteResponse(success=True, message="the order was deleted!", deleted_items=removed)


app.include_router(api)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
