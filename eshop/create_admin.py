"""
Bootstrap an admin account.

Registration never grants admin rights to anonymous callers, so the first
admin has to be created out of band.

Usage:
  python -m eshop.create_admin --email admin@example.com --password secret [--name Admin]
"""
import argparse
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .db import Base, SessionLocal, engine
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_admin(db: Session, email: str, password: str, name: str = "Admin") -> models.User:
    """Create the admin, or promote an existing user with that email. Returns the user."""
    existing = db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()
    if existing:
        if not existing.is_admin:
            existing.is_admin = True
            db.commit()
            logger.info("promoted user %s to admin", existing.id)
        return existing
    user = crud.register_user(
        db,
        schemas.UserRegister(name=name, email=email, password=password, is_admin=True),
        allow_admin=True,
    )
    logger.info("created admin user %s", user.id)
    return user


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Admin email (login name)")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--name", default="Admin", help="Display name")
    args = parser.parse_args()

    setup_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = create_admin(db, args.email, args.password, args.name)
    finally:
        db.close()
    print(f"admin user id={user.id} email={user.email}")


if __name__ == "__main__":
    main()
