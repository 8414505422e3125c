import os
from dotenv import load_dotenv

load_dotenv() # Load .env file from project root if running locally

DATABASE_USER = os.getenv("POSTGRES_USER", "postgres")
DATABASE_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DATABASE_HOST = os.getenv("POSTGRES_HOST", "localhost")
DATABASE_PORT = os.getenv("POSTGRES_PORT", "5432")
DATABASE_NAME = os.getenv("POSTGRES_DB", "inventory_management")

# Async database URL for SQLAlchemy; DATABASE_URL wins when set (tests use sqlite+aiosqlite)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DATABASE_USER}:{DATABASE_PASSWORD}@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}",
)
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")

APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

TRANSACTIONS_PAGE_SIZE = int(os.getenv("TRANSACTIONS_PAGE_SIZE", "50"))
