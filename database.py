"""
Database access for the Course Marketplace API.

A single MongoClient is opened from DATABASE_URL / DATABASE_NAME. Route
handlers never touch module globals directly: they receive a ``Stores``
handle through the ``get_stores`` dependency, which tests override.
"""
import logging
import os
from typing import Optional

from fastapi import HTTPException
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "course-marketplace")

client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info("Using database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL not set, store-backed routes will answer 503")


class Stores:
    """The six collections the API reads and writes."""

    def __init__(self, database: Database):
        self.database = database
        self.users = database["users"]
        self.classes = database["classes"]
        self.cart = database["cart"]
        self.payments = database["payments"]
        self.enrolled = database["enrolled"]
        self.applied = database["applied"]


def ensure_indexes(stores: Stores):
    # Registration relies on this index; the lookup before insert alone races
    stores.users.create_index([("email", ASCENDING)], unique=True)


def get_stores() -> Stores:
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return Stores(db)
