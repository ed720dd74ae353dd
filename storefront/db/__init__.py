from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from storefront.config import settings

DATABASE_URL = settings.DATABASE_URL
engine = create_engine(DATABASE_URL, future=True, echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind=None):
    """
    Create the client-local tables (currently only the storage slots).

    Model modules are imported here so their tables are registered on
    Base.metadata before create_all runs.
    """
    import storefront.models.storage_slot  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

