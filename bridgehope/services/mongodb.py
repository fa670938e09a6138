# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and multi-document transactions.
"""

import os
import logging
from contextlib import contextmanager
from typing import List, Dict, Optional, Any, Iterator
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from pymongo.read_concern import ReadConcern
from pymongo.read_preferences import ReadPreference
from pymongo.write_concern import WriteConcern

logger = logging.getLogger(__name__)


PARTIES = "parties"
DONATIONS = "donations"
ORPHANAGE_REQUESTS = "orphanage_requests"
DISTRIBUTION_HISTORY = "distribution_history"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Any], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size if page_size > 0 else 0
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


class MongoDBService:
    """MongoDB service with connection pooling and transaction support."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/bridge_hope_dev?replicaSet=rs0'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'bridge_hope_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                self._client = None
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            # Ping the database
            result = self.client.admin.command('ping')

            # Get server info
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        """
        Run a block inside a multi-document transaction.

        The transaction commits when the block exits normally and aborts when
        it raises. Requires a replica set or sharded cluster.

        Yields:
            ClientSession to pass to every operation of the unit of work
        """
        with self.client.start_session() as session:
            with session.start_transaction(
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern(w="majority"),
                read_preference=ReadPreference.PRIMARY
            ):
                logger.debug("MongoDB transaction started")
                yield session
            logger.debug("MongoDB transaction finished")

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Parties indexes (directory lookups by role and name)
            parties = self.get_collection(PARTIES)
            parties.create_index([("role", ASCENDING), ("name", ASCENDING), ("createdAt", ASCENDING)])
            parties.create_index("email", unique=True, sparse=True)

            # Donations indexes
            donations = self.get_collection(DONATIONS)
            donations.create_index([("ngoId", ASCENDING), ("createdAt", DESCENDING)])
            donations.create_index([("donorId", ASCENDING), ("createdAt", DESCENDING)])
            donations.create_index([("ngoId", ASCENDING), ("status", ASCENDING)])

            # Orphanage requests indexes
            requests = self.get_collection(ORPHANAGE_REQUESTS)
            requests.create_index([
                ("orphanageId", ASCENDING),
                ("ngoId", ASCENDING),
                ("status", ASCENDING),
                ("kind", ASCENDING)
            ])
            requests.create_index([("ngoId", ASCENDING), ("createdAt", DESCENDING)])
            requests.create_index([("orphanageId", ASCENDING), ("createdAt", DESCENDING)])

            # Distribution history indexes
            history = self.get_collection(DISTRIBUTION_HISTORY)
            history.create_index("donationId")
            history.create_index([("orphanageId", ASCENDING), ("action", ASCENDING), ("distributedAt", DESCENDING)])
            history.create_index([("ngoId", ASCENDING), ("distributedAt", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
