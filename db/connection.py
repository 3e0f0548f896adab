from fastapi import Depends
from sqlalchemy.orm import Session
from .database import engine, SessionLocal, Base
from typing import Annotated

# Import models so they register on Base.metadata
import models.Products  # noqa: F401
import models.Categories  # noqa: F401
import models.Attributes  # noqa: F401


def init_db(bind=engine):
    """Create the catalog tables if they do not exist yet."""
    Base.metadata.create_all(bind=bind)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]
