from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from inventory_ledger.config import settings


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import all models so Base.metadata knows about them
    import inventory_ledger.models.inventory  # noqa: F401
    import inventory_ledger.models.inventory_log  # noqa: F401
    import inventory_ledger.models.material  # noqa: F401
    import inventory_ledger.models.user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
