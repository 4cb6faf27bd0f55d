import logging

import certifi
from pymongo import MongoClient, ASCENDING, DESCENDING, IndexModel
from pymongo.database import Database

from flatmates.config import MONGO_URI, MONGO_DB_NAME, OTP_TTL_SECONDS

logger = logging.getLogger("uvicorn.error")

USERS = "users"
PROPERTIES = "properties"
CONVERSATIONS = "conversations"
MESSAGES = "messages"
OTPS = "otps"

_client = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        # Atlas (SRV) clusters need the certifi bundle on hosts without system CAs
        if MONGO_URI.startswith("mongodb+srv://"):
            _client = MongoClient(MONGO_URI, tlsCAFile=certifi.where())
        else:
            _client = MongoClient(MONGO_URI)
    return _client


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_client()[MONGO_DB_NAME]


def ensure_indexes(db: Database):
    db[USERS].create_indexes([
        IndexModel([("email", ASCENDING)], unique=True),
        IndexModel([("userType", ASCENDING), ("createdAt", DESCENDING)]),
        IndexModel([("socialProvider", ASCENDING), ("socialId", ASCENDING)]),
    ])
    db[PROPERTIES].create_indexes([
        IndexModel([("owner", ASCENDING)]),
        IndexModel([("status", ASCENDING), ("createdAt", DESCENDING)]),
    ])
    db[CONVERSATIONS].create_index([("participants", ASCENDING), ("updatedAt", DESCENDING)])
    db[MESSAGES].create_index([("conversation", ASCENDING), ("createdAt", ASCENDING)])

    # The server purges OTP records on its own once createdAt is 600s old
    db[OTPS].create_indexes([
        IndexModel([("createdAt", ASCENDING)], expireAfterSeconds=OTP_TTL_SECONDS),
        IndexModel([("email", ASCENDING), ("createdAt", ASCENDING)]),
    ])
    logger.info("MongoDB indexes ensured on %s", db.name)


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None
