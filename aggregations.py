"""
Read-side views composed across stores.

References are resolved here and nowhere else: classes point at their
instructor by ``instructorEmail``, enrollments point at a user by
``userEmail`` and at a class by ``classesId`` (an ObjectId).
"""
from typing import List

from pymongo import ASCENDING, DESCENDING

from database import Stores

POPULAR_LIMIT = 6


def popular_classes(stores: Stores, limit: int = POPULAR_LIMIT) -> List[dict]:
    # _id breaks ties in insertion order
    cursor = stores.classes.find().sort([("totalEnrolled", DESCENDING), ("_id", ASCENDING)]).limit(limit)
    return list(cursor)


def popular_instructors_pipeline(limit: int = POPULAR_LIMIT) -> List[dict]:
    return [
        {"$group": {"_id": "$instructorEmail", "totalEnrolled": {"$sum": "$totalEnrolled"}}},
        {"$lookup": {"from": "users", "localField": "_id", "foreignField": "email", "as": "instructor"}},
        {"$unwind": "$instructor"},
        {"$match": {"instructor.role": "instructor"}},
        {"$project": {"_id": 0, "instructor": 1, "totalEnrolled": 1}},
        {"$sort": {"totalEnrolled": -1, "instructor.email": 1}},
        {"$limit": limit},
    ]


def popular_instructors(stores: Stores, limit: int = POPULAR_LIMIT) -> List[dict]:
    return list(stores.classes.aggregate(popular_instructors_pipeline(limit)))


def enrolled_classes_pipeline(email: str) -> List[dict]:
    return [
        {"$match": {"userEmail": email}},
        {"$lookup": {"from": "classes", "localField": "classesId", "foreignField": "_id", "as": "classes"}},
        {"$unwind": "$classes"},
        {
            "$lookup": {
                "from": "users",
                "localField": "classes.instructorEmail",
                "foreignField": "email",
                "as": "instructor",
            }
        },
        {"$unwind": {"path": "$instructor", "preserveNullAndEmptyArrays": True}},
        {"$project": {"_id": 0, "instructor": 1, "classes": 1}},
    ]


def enrolled_classes(stores: Stores, email: str) -> List[dict]:
    """One row per enrollment: the class and its instructor's user record."""
    return list(stores.enrolled.aggregate(enrolled_classes_pipeline(email)))


def admin_stats(stores: Stores) -> dict:
    # Key spelling is part of the public response
    return {
        "approvedClases": stores.classes.count_documents({"status": "approved"}),
        "pendingClases": stores.classes.count_documents({"status": "pending"}),
        "instructors": stores.users.count_documents({"role": "instructor"}),
        "totalClases": stores.classes.count_documents({}),
        "totalEnrolled": stores.enrolled.count_documents({}),
    }
