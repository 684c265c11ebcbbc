from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from dotenv import load_dotenv
import os

# Load environment variables
load_dotenv()

# Get database credentials from environment
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_NAME = os.getenv("DB_NAME", "tuition_ledger_db")
DB_ECHO = os.getenv("DB_ECHO", "0").lower() in ("1", "true", "yes")

# Create database URL (DATABASE_URL wins when set, e.g. sqlite+aiosqlite for tests)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# Create SQLAlchemy async engine
engine = create_async_engine(DATABASE_URL, echo=DB_ECHO)

# Create SessionLocal class
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

# Create Base class for models
Base = declarative_base()

# Dependency to get database session
async def get_db():
    async with SessionLocal() as db:
        yield db


# Import all models here to ensure they are registered with SQLAlchemy's Base
from models.fees import fees_models
from models.settings import settings_models

# Function to create all tables
async def create_tables(bind=None):
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
