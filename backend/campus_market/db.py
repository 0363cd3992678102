import logging

from sqlmodel import SQLModel, create_engine, Session, select

from campus_market.config import config
from campus_market.models.category_db import Category

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Lecture Notes", "lecture-notes"),
    ("Textbooks", "textbooks"),
    ("Furniture", "furniture"),
    ("Electronics", "electronics"),
    ("Dorm Essentials", "dorm-essentials"),
]


def build_engine(url: str, **kwargs):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args, **kwargs)


engine = build_engine(config.DATABASE_URL)


def create_db_and_tables():
    # Table modules must be imported so their metadata is registered
    from campus_market.models import (  # noqa: F401
        category_db, chat_support_db, favorite_db, listing_db,
        message_db, order_db, review_db, user_db, wallet_db,
    )
    SQLModel.metadata.create_all(engine)
    seed_default_categories()


def seed_default_categories():
    with get_session() as session:
        if session.exec(select(Category)).first():
            return
        for name, slug in DEFAULT_CATEGORIES:
            session.add(Category(name=name, slug=slug, item_count=0))
        session.commit()
        logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))


def get_session():
    return Session(engine)
