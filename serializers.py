"""Convert BSON documents and pymongo results into JSON-ready values."""
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult


def to_json(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


def doc_out(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    return to_json(doc)


def docs_out(docs) -> list:
    return [to_json(d) for d in docs]


def insert_result(res: InsertOneResult) -> dict:
    return {"acknowledged": res.acknowledged, "insertedId": str(res.inserted_id)}


def update_result(res: UpdateResult) -> dict:
    upserted_id = res.upserted_id
    return {
        "acknowledged": res.acknowledged,
        "matchedCount": res.matched_count,
        "modifiedCount": res.modified_count,
        "upsertedCount": 1 if upserted_id is not None else 0,
        "upsertedId": str(upserted_id) if upserted_id is not None else None,
    }


def delete_result(res: DeleteResult) -> dict:
    return {"acknowledged": res.acknowledged, "deletedCount": res.deleted_count}
