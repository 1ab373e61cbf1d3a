from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from config.config import MONGODB_URI, DATABASE_NAME
from config.log import get_logger

logger = get_logger(__name__)

USERS = "users"
EVENTS = "events"
REGISTRATIONS = "registrations"


def get_db(request: Request):
    """Dependency to get database instance from app state"""
    return request.app.state.db


class Database:
    def __init__(self, uri=MONGODB_URI, database_name=DATABASE_NAME, client=None):
        self.MONGO_URI = uri
        self.database_name = database_name
        self.client = client
        self.db = None
        if client is not None:
            self.db = client[database_name]

    def connect(self):
        if self.client is None:
            self.client = AsyncIOMotorClient(self.MONGO_URI)
        self.db = self.client[self.database_name]
        logger.info("Connected to MongoDB", database=self.database_name)

    def close(self):
        if self.client is not None:
            self.client.close()

    async def ensure_indexes(self):
        """Create the indexes the consistency model relies on."""
        users = self.db[USERS]
        await users.create_index("authId", unique=True)
        await users.create_index("email", unique=True)
        await users.create_index("user_id", unique=True)

        events = self.db[EVENTS]
        await events.create_index("event_id", unique=True)
        await events.create_index("seo.slug", unique=True, sparse=True)
        await events.create_index([("startDate", ASCENDING), ("status", ASCENDING)])
        await events.create_index([("category", ASCENDING), ("status", ASCENDING)])

        registrations = self.db[REGISTRATIONS]
        await registrations.create_index("registration_id", unique=True)
        # At most one registration per (user, event); concurrent creates race on this index.
        await registrations.create_index([("user", ASCENDING), ("event", ASCENDING)], unique=True)
        await registrations.create_index([("event", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)])
        await registrations.create_index([("user", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)])
        await registrations.create_index([("createdAt", DESCENDING)])
        logger.info("Database indexes ensured")

    @staticmethod
    def _clean(document):
        if document is not None and "_id" in document:
            document["_id"] = str(document["_id"])
        return document

    async def add(self, collection_name, data):
        collection = self.db[collection_name]
        result = await collection.insert_one(data)

        if result.inserted_id:
            data["_id"] = str(result.inserted_id)
            return {
                "status": 200,
                "data": data,
                "message": "Document added successfully"
            }
        return {
            "status": 500,
            "message": "Failed to add document"
        }

    async def find_many(self, collection_name, query=None, projection=None, sort=None, skip=None, limit=None):
        """Find multiple documents matching query"""
        collection = self.db[collection_name]
        cursor = collection.find(query or {}, projection)

        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)

        documents = []
        async for doc in cursor:
            documents.append(self._clean(doc))

        return {
            "status": 200,
            "data": documents,
            "message": "Documents retrieved successfully"
        }

    async def find_one(self, collection_name, query, projection=None):
        """Find a single document (returns document directly or None)"""
        collection = self.db[collection_name]
        document = await collection.find_one(query, projection)
        return self._clean(document)

    async def count(self, collection_name, query=None):
        collection = self.db[collection_name]
        return await collection.count_documents(query or {})

    async def update(self, collection_name, query, update_string):
        collection = self.db[collection_name]
        result = await collection.update_one(query, update_string)

        return {
            "status": 200 if result.matched_count > 0 else 404,
            "matched_count": result.matched_count,
            "modified_count": result.modified_count,
            "message": "Document updated successfully" if result.matched_count > 0 else "Document not found"
        }

    async def delete(self, collection_name, query):
        collection = self.db[collection_name]
        result = await collection.delete_one(query)

        return {
            "status": 200 if result.deleted_count > 0 else 404,
            "deleted_count": result.deleted_count,
            "message": "Document deleted successfully" if result.deleted_count > 0 else "Document not found"
        }

    async def delete_many(self, collection_name, query):
        collection = self.db[collection_name]
        result = await collection.delete_many(query)

        return {
            "status": 200,
            "deleted_count": result.deleted_count,
            "message": f"Deleted {result.deleted_count} documents"
        }

    async def aggregate(self, collection_name, pipeline):
        collection = self.db[collection_name]
        cursor = collection.aggregate(pipeline)
        return await cursor.to_list(length=None)
