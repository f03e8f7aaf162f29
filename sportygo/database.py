from functools import lru_cache
from typing import Optional

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from sportygo.config import settings
from sportygo.store.documents import DOCUMENT_MODELS
from sportygo.store.mongo import MongoStore


@lru_cache
def _get_client() -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.mongodb_url, tz_aware=True)


async def init_db(
    client: Optional[AsyncIOMotorClient] = None,
    database_name: Optional[str] = None,
) -> MongoStore:
    client = client or _get_client()
    await init_beanie(
        database=client[database_name or settings.database_name],
        document_models=DOCUMENT_MODELS,
    )
    return MongoStore(client)
