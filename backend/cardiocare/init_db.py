import logging

from sqlalchemy import text

from cardiocare.core.config import settings
from cardiocare.core.mongodb import close_mongo_clients, init_mongodb_collections
from cardiocare.models.database import Base, engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(bind=None):
    """Initialize the food catalog tables and indexes"""
    bind = bind or engine
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully!")

        logger.info("Creating indexes...")
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_foods_created_at ON foods(created_at);",
            "CREATE INDEX IF NOT EXISTS idx_foods_calories ON foods(calories);",
        ]
        with bind.begin() as conn:
            for index in indexes:
                try:
                    conn.execute(text(index))
                    logger.info(f"Index created: {index[:50]}...")
                except Exception as e:
                    logger.warning(f"Index might already exist: {e}")

        logger.info("Database initialization complete!")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def init_chat_history():
    """Create the chat history collection and TTL index"""
    logger.info(f"Preparing chat history in {settings.mongodb_db}.{settings.chat_history_collection}...")
    try:
        init_mongodb_collections()
    finally:
        close_mongo_clients()


if __name__ == "__main__":
    init_database()
    init_chat_history()
