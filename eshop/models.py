from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .db import Base


def utcnow():
    return datetime.now(timezone.utc)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=True)
    color = Column(String, nullable=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=False, default="")
    rich_description = Column(Text, nullable=False, default="")
    image = Column(String, nullable=False, default="")
    # URLs of gallery images; files live in the upload dir, not in the row
    images = Column(JSON, nullable=False, default=list)
    brand = Column(String, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False, default=0)
    # No FK constraint: a category may be deleted while products still point at it
    category_id = Column(Integer, nullable=False, index=True)
    count_in_stock = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0)
    num_reviews = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False, index=True)
    date_created = Column(DateTime, nullable=False, default=utcnow)

    category = relationship(
        "Category",
        primaryjoin="foreign(Product.category_id) == Category.id",
        lazy="joined",
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    # Uniqueness is checked on register/update, not by a constraint
    email = Column(String, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    phone = Column(String, nullable=False, default="")
    is_admin = Column(Boolean, nullable=False, default=False)
    street = Column(String, nullable=False, default="")
    apartment = Column(String, nullable=False, default="")
    zip = Column(String, nullable=False, default="")
    city = Column(String, nullable=False, default="")
    country = Column(String, nullable=False, default="")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    quantity = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False, index=True)
    # NULL until the owning order has been written
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)

    product = relationship(
        "Product",
        primaryjoin="foreign(OrderItem.product_id) == Product.id",
        lazy="joined",
    )
    order = relationship("Order", back_populates="order_items")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    shipping_address1 = Column(String, nullable=False)
    shipping_address2 = Column(String, nullable=False, default="")
    city = Column(String, nullable=False)
    zip = Column(String, nullable=False)
    country = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    status = Column(String, nullable=False, default="Pending")
    total_price = Column(Numeric(10, 2), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    date_of_order = Column(DateTime, nullable=False, default=utcnow, index=True)

    order_items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    user = relationship(
        "User",
        primaryjoin="foreign(Order.user_id) == User.id",
        lazy="joined",
    )
