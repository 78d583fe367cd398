import logging
from datetime import date, datetime
from decimal import Decimal

from bson.codec_options import CodecOptions, TypeCodec, TypeEncoder, TypeRegistry
from bson.decimal128 import Decimal128
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)


class DecimalCodec(TypeCodec):
    """Store money as Decimal128, read it back as Decimal."""

    python_type = Decimal
    bson_type = Decimal128

    def transform_python(self, value):
        return Decimal128(value)

    def transform_bson(self, value):
        return value.to_decimal()


class DateEncoder(TypeEncoder):
    """Calendar dates are stored as midnight datetimes."""

    python_type = date

    def transform_python(self, value):
        return datetime(value.year, value.month, value.day)


CODEC_OPTIONS = CodecOptions(type_registry=TypeRegistry([DecimalCodec(), DateEncoder()]))


class MongoDatabase:
    """MongoDB connection manager."""
    
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client.get_database(settings.DATABASE_NAME, codec_options=CODEC_OPTIONS)
    
    # Create indexes
    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    await db["representatives"].create_index("code", unique=True)

    await db["invoices"].create_index("invoice_number", unique=True)
    await db["invoices"].create_index([("representative_id", 1), ("status", 1)])

    await db["payments"].create_index([("representative_id", 1), ("is_allocated", 1), ("payment_date", 1)])

    await db["allocations"].create_index("payment_id")
    await db["allocations"].create_index("representative_id")

    await db["reconciliation_audits"].create_index([("representative_id", 1), ("created_at", -1)])

    # Abandoned leases disappear on their own
    await db["representative_locks"].create_index("expires_at", expireAfterSeconds=0)

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
