import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import NotFound, StorageFailure, ValidationFailed
from .utils import like_pattern, sanitize_input

logger = logging.getLogger(__name__)

# Business rule: money stored rounded to 2 decimals

def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal) -> int:
    """Price in cents, as payment gateways expect it."""
    return int((Decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# -------------------- Categories --------------------
def list_categories(db: Session) -> List[models.Category]:
    return db.query(models.Category).order_by(models.Category.id).all()


def get_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if not category:
        raise NotFound("Category with the given ID was not found")
    return category


def create_category(db: Session, category: schemas.CategoryCreate) -> models.Category:
    db_category = models.Category(name=category.name, icon=category.icon, color=category.color)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category


def update_category(db: Session, category_id: int, changes: schemas.CategoryUpdate) -> models.Category:
    category = get_category(db, category_id)
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    # Products may still reference it; that is allowed
    category = get_category(db, category_id)
    db.delete(category)
    db.commit()


# -------------------- Products --------------------
def check_category(db: Session, category_id: int) -> None:
    if db.get(models.Category, category_id) is None:
        raise ValidationFailed("Invalid Category")


def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if not product:
        raise NotFound("Product could not be found")
    return product


def create_product(db: Session, product: schemas.ProductCreate, image_url: str) -> models.Product:
    check_category(db, product.category)
    data = product.model_dump()
    data["category_id"] = data.pop("category")
    data["price"] = round_amount(data["price"])
    db_product = models.Product(image=image_url, images=[], **data)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product_id: int, changes: schemas.ProductUpdate, image_url: str | None = None) -> models.Product:
    if changes.category is not None:
        check_category(db, changes.category)
    product = get_product(db, product_id)
    data = changes.model_dump(exclude_unset=True, exclude_none=True)
    if "category" in data:
        data["category_id"] = data.pop("category")
    if "price" in data:
        data["price"] = round_amount(data["price"])
    for field, value in data.items():
        setattr(product, field, value)
    # no new upload keeps the existing image
    if image_url:
        product.image = image_url
    db.commit()
    db.refresh(product)
    return product


def set_gallery_images(db: Session, product_id: int, image_urls: List[str]) -> models.Product:
    product = get_product(db, product_id)
    product.images = list(image_urls)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    db.delete(product)
    db.commit()


def list_all_products(db: Session) -> List[models.Product]:
    return db.query(models.Product).order_by(models.Product.id).all()


def featured_products(db: Session, count: int) -> List[models.Product]:
    return (
        db.query(models.Product)
        .filter(models.Product.is_featured.is_(True))
        .order_by(models.Product.id)
        .limit(count)
        .all()
    )


SORT_COLUMNS = {
    "name": models.Product.name.asc(),
    "priceAsc": models.Product.price.asc(),
    "priceDesc": models.Product.price.desc(),
    "rating": models.Product.rating.desc(),
}


def _parse_category_ids(raw: str) -> List[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValidationFailed("categories must be a comma-separated list of ids")


def query_products(db: Session, query: schemas.ProductQuery) -> Tuple[int, List[models.Product]]:
    """Filter, sort and paginate products.

    Returns the number of products matching the filter (ignoring pagination)
    and the requested page. A category filter wins over a search text.
    """
    q = db.query(models.Product)
    if query.categories:
        q = q.filter(models.Product.category_id.in_(_parse_category_ids(query.categories)))
    elif query.search_text:
        text = sanitize_input(query.search_text)
        if text:
            q = q.filter(models.Product.name.ilike(like_pattern(text), escape="\\"))

    count = q.order_by(None).count()

    if query.sort:
        q = q.order_by(SORT_COLUMNS[query.sort], models.Product.id)
    else:
        q = q.order_by(models.Product.id)

    if query.page_index:
        page, size = query.page_index
        q = q.offset(size * (page - 1)).limit(size)

    return count, q.all()


# -------------------- Users --------------------
def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(models.User).filter(func.lower(models.User.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(models.User.id != exclude_id)
    return db.query(q.exists()).scalar()


def register_user(db: Session, user: schemas.UserRegister, allow_admin: bool = False) -> models.User:
    if _email_taken(db, user.email):
        raise ValidationFailed("Email already registered")
    data = user.model_dump(exclude={"password"})
    data["is_admin"] = bool(user.is_admin and allow_admin)
    db_user = models.User(password_hash=hash_password(user.password), **data)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("The user with the given ID could not be found")
    return user


def update_user(db: Session, user_id: int, changes: schemas.UserUpdate) -> models.User:
    user = get_user(db, user_id)
    data = changes.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in data and _email_taken(db, data["email"], exclude_id=user_id):
        raise ValidationFailed("Email already registered")
    # only re-hash when a new password is supplied
    password = data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in data.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> None:
    user = get_user(db, user_id)
    db.delete(user)
    db.commit()


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()
    if not user:
        raise ValidationFailed("User not found")
    if not verify_password(password, user.password_hash):
        logger.info("failed login for user id=%s", user.id)
        raise ValidationFailed("Password is incorrect")
    return user


# -------------------- Orders --------------------
def _line_totals(db: Session, items: List[models.OrderItem]) -> List[Decimal]:
    product_ids = {item.product_id for item in items}
    prices = dict(
        db.execute(select(models.Product.id, models.Product.price).where(models.Product.id.in_(product_ids))).all()
    )
    totals = []
    for item in items:
        price = prices.get(item.product_id)
        if price is None:
            raise ValidationFailed(f"Invalid product {item.product_id} in order item {item.id}")
        totals.append(Decimal(price) * item.quantity)
    return totals


def create_order(db: Session, order: schemas.OrderCreate) -> models.Order:
    """Write the order items, price them, then write the order.

    The items are committed before the order exists and are not removed
    if a later step fails.
    """
    if db.get(models.User, order.user) is None:
        raise ValidationFailed("Invalid user")

    items = [models.OrderItem(product_id=line.product, quantity=line.quantity) for line in order.order_items]
    db.add_all(items)
    db.commit()
    item_ids = [item.id for item in items]
    logger.info("created %d order items %s for user %s", len(items), item_ids, order.user)

    try:
        total = round_amount(sum(_line_totals(db, items), Decimal("0")))
        db_order = models.Order(
            shipping_address1=order.shipping_address1,
            shipping_address2=order.shipping_address2,
            city=order.city,
            zip=order.zip,
            country=order.country,
            phone=order.phone,
            status=order.status,
            total_price=total,
            user_id=order.user,
        )
        db_order.order_items = items
        db.add(db_order)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("order creation failed; order items %s left without an order", item_ids)
        raise
    db.refresh(db_order)
    logger.info("created order %s total=%s", db_order.id, db_order.total_price)
    return db_order


def list_orders(db: Session) -> List[models.Order]:
    return db.query(models.Order).order_by(models.Order.date_of_order.desc(), models.Order.id.desc()).all()


def get_order(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFound("order not found")
    return order


def user_orders(db: Session, user_id: int) -> List[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user_id)
        .order_by(models.Order.date_of_order.desc(), models.Order.id.desc())
        .all()
    )


def update_order_status(db: Session, order_id: int, status: str) -> models.Order:
    order = get_order(db, order_id)
    order.status = status
    db.commit()
    db.refresh(order)
    return order


def get_order_item(db: Session, item_id: int) -> models.OrderItem:
    """Look up one line item; raises NotFound once its order has been deleted."""
    item = db.get(models.OrderItem, item_id)
    if not item:
        raise NotFound("order item not found")
    return item


def delete_order(db: Session, order_id: int) -> int:
    """Delete an order and each of its items as one unit; returns the number of items removed."""
    order = get_order(db, order_id)
    item_ids = [item.id for item in order.order_items]
    try:
        for item in list(order.order_items):
            db.delete(item)
        db.delete(order)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("deleting order %s failed, nothing removed: %s", order_id, e)
        raise StorageFailure(f"order {order_id} could not be deleted")
    logger.info("deleted order %s and order items %s", order_id, item_ids)
    return len(item_ids)


# -------------------- Checkout --------------------
def build_checkout_line_items(db: Session, cart: List[schemas.LineItemIn], currency: str) -> List[dict]:
    if not cart:
        raise ValidationFailed("Checkout session can not be created - check the order items")
    line_items = []
    for line in cart:
        product = get_product(db, line.product)
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": {"name": product.name},
                "unit_amount": to_minor_units(product.price),
            },
            "quantity": line.quantity,
        })
    return line_items


# -------------------- Aggregates --------------------
def total_sales(db: Session) -> Decimal:
    total = db.query(func.coalesce(func.sum(models.Order.total_price), 0)).scalar()
    return round_amount(Decimal(str(total)))


def count(db: Session, model) -> int:
    return db.query(func.count(model.id)).scalar() or 0
