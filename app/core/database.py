# database.py - Mongo connection for the billing console

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional, Dict, Any
from dataclasses import dataclass
from datetime import datetime, timezone
import asyncio
import logging
import os

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class AsyncDatabaseConfig:
    mongo_uri: str
    database_name: str
    max_pool_size: int = 50
    min_pool_size: int = 5
    timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> "AsyncDatabaseConfig":
        return cls(
            mongo_uri=settings.MONGO_URL,
            database_name=settings.MONGO_DATABASE,
            max_pool_size=int(os.getenv("MONGO_MAX_POOL_SIZE", "50")),
            min_pool_size=int(os.getenv("MONGO_MIN_POOL_SIZE", "5")),
            timeout_ms=int(os.getenv("MONGO_TIMEOUT_MS", "5000")),
        )

    def validate(self) -> None:
        if not self.mongo_uri or not self.database_name:
            raise ValueError("MONGO_URI and MONGO_DATABASE must be set")
        if self.min_pool_size < 0 or self.max_pool_size < max(1, self.min_pool_size):
            raise ValueError(
                f"Invalid pool bounds {self.min_pool_size}-{self.max_pool_size}"
            )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AsyncDatabaseManager:
    """
    Process-wide motor client. `initialize()` once in the app lifespan,
    then read `database` anywhere.
    """

    _instance: Optional["AsyncDatabaseManager"] = None

    def __new__(cls) -> "AsyncDatabaseManager":
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._lock = asyncio.Lock()
            instance._client = None
            instance._database = None
            instance._config = None
            cls._instance = instance
        return cls._instance

    @property
    def is_initialized(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise RuntimeError("Database not initialized; call `await db_manager.initialize()`")
        return self._database

    async def initialize(self, config: Optional[AsyncDatabaseConfig] = None) -> None:
        async with self._lock:
            if self.is_initialized:
                logger.warning("Database already initialized, skipping")
                return

            config = config or AsyncDatabaseConfig.from_env()
            config.validate()

            client = AsyncIOMotorClient(
                config.mongo_uri,
                maxPoolSize=config.max_pool_size,
                minPoolSize=config.min_pool_size,
                serverSelectionTimeoutMS=config.timeout_ms,
                connectTimeoutMS=config.timeout_ms,
                retryWrites=True,
                tz_aware=True,
            )
            try:
                await asyncio.wait_for(client.server_info(), timeout=config.timeout_ms / 1000)
            except (ConnectionFailure, ServerSelectionTimeoutError, asyncio.TimeoutError) as e:
                client.close()
                logger.error(f"Could not reach MongoDB at startup: {e}")
                raise ConnectionFailure(f"Could not connect to MongoDB: {e}") from e

            self._client = client
            self._database = client[config.database_name]
            self._config = config
            logger.info(f"Connected to MongoDB database '{config.database_name}'")

    async def health_check(self) -> Dict[str, Any]:
        if not self.is_initialized:
            return {"status": "unhealthy", "error": "Database not initialized", "timestamp": _now()}

        started = datetime.now(timezone.utc)
        try:
            await asyncio.wait_for(self._client.admin.command("ping"), timeout=5.0)
        except (ConnectionFailure, ServerSelectionTimeoutError, asyncio.TimeoutError) as e:
            logger.error(f"Database health check failed: {e!r}")
            return {"status": "unhealthy", "error": repr(e), "timestamp": _now()}

        latency = (datetime.now(timezone.utc) - started).total_seconds() * 1000
        return {
            "status": "healthy",
            "database": self._config.database_name,
            "latency_ms": round(latency, 2),
            "timestamp": _now(),
        }

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                logger.info("Closing database connection...")
                self._client.close()
            self._client = None
            self._database = None
            self._config = None


db_manager = AsyncDatabaseManager()
