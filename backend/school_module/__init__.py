from sqlalchemy.orm import Session

from .database import Base, engine
from .routes import routers
from .services import seed_default_admin
from .storage import ensure_upload_dirs


def init_school_module() -> None:
    Base.metadata.create_all(bind=engine)
    ensure_upload_dirs()
    db = Session(bind=engine)
    try:
        seed_default_admin(db)
    finally:
        db.close()


__all__ = ["routers", "init_school_module"]
