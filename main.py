import logging
import os
from typing import Optional

from bson import ObjectId
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError, WriteError
from starlette.exceptions import HTTPException as StarletteHTTPException

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

import aggregations
import database
from auth import issue_token, verify_admin, verify_instructor, verify_jwt
from database import Stores, ensure_indexes, get_stores
from schemas import (
    AppliedInstructor,
    CartItem,
    ClassItem,
    StatusChange,
    UpdateClassBody,
    UpdateUserBody,
    User,
)
from serializers import delete_result, doc_out, docs_out, insert_result, update_result

logger = logging.getLogger("course_marketplace")

# App setup
app = FastAPI(title="Course Marketplace API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error bodies use {"message": ...}, which is what the web client reads
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(ConnectionFailure)
async def store_unreachable(request: Request, exc: ConnectionFailure):
    logger.error("Store unreachable on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"message": "Database unavailable"}, status_code=503)


@app.exception_handler(WriteError)
async def write_rejected(request: Request, exc: WriteError):
    logger.info("Write rejected on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"message": "Invalid write"}, status_code=400)


@app.exception_handler(PyMongoError)
async def store_error(request: Request, exc: PyMongoError):
    logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"message": "Database error"}, status_code=500)


@app.on_event("startup")
def create_indexes():
    if database.db is None:
        return
    try:
        ensure_indexes(Stores(database.db))
    except PyMongoError as e:
        logger.error("Could not create indexes: %s", e)


# Helpers

def object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(400, "Invalid id")
    return ObjectId(value)


def found(doc: Optional[dict], what: str) -> dict:
    if doc is None:
        raise HTTPException(404, f"{what} not found")
    return doc_out(doc)


# Token Endpoint
@app.post("/api/set-token")
def set_token(claims: dict = Body(...)):
    return {"token": issue_token(claims)}


# Users Endpoints
@app.post("/new-user")
def new_user(body: User, stores: Stores = Depends(get_stores)):
    if stores.users.find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        res = stores.users.insert_one(body.model_dump(exclude_none=True))
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("Created user %s with role %s", body.email, body.role)
    return insert_result(res)


@app.get("/users")
def get_users(stores: Stores = Depends(get_stores)):
    return docs_out(stores.users.find())


@app.get("/users/{user_id}")
def get_user(user_id: str, stores: Stores = Depends(get_stores)):
    return found(stores.users.find_one({"_id": object_id(user_id)}), "User")


@app.get("/user/{email}", dependencies=[Depends(verify_jwt)])
def get_user_by_email(email: str, stores: Stores = Depends(get_stores)):
    return found(stores.users.find_one({"email": email}), "User")


@app.delete("/delete-user/{user_id}", dependencies=[Depends(verify_admin)])
def delete_user(user_id: str, stores: Stores = Depends(get_stores)):
    res = stores.users.delete_one({"_id": object_id(user_id)})
    return delete_result(res)


@app.put("/update-user/{user_id}", dependencies=[Depends(verify_admin)])
def update_user(user_id: str, body: UpdateUserBody, stores: Stores = Depends(get_stores)):
    update = {
        "name": body.name,
        "email": body.email,
        "role": body.option,
        "address": body.address,
        "about": body.about,
        "photoUrl": body.photoUrl,
        "skills": body.skills or None,
    }
    res = stores.users.update_one({"_id": object_id(user_id)}, {"$set": update}, upsert=True)
    return update_result(res)


@app.get("/instructors")
def get_instructors(stores: Stores = Depends(get_stores)):
    return docs_out(stores.users.find({"role": "instructor"}))


# Classes Endpoints
@app.post("/new-class")
def new_class(body: ClassItem, instructor: dict = Depends(verify_instructor), stores: Stores = Depends(get_stores)):
    doc = body.model_dump()
    doc["instructorEmail"] = doc.get("instructorEmail") or instructor["email"]
    # Review state and enrollment count are owned by admins and the payment flow
    doc.update({"status": "pending", "reason": None, "totalEnrolled": 0})
    res = stores.classes.insert_one(doc)
    return insert_result(res)


@app.get("/classes")
def get_classes(stores: Stores = Depends(get_stores)):
    return docs_out(stores.classes.find())


@app.get("/classes/{email}", dependencies=[Depends(verify_instructor)])
def get_classes_by_instructor(email: str, stores: Stores = Depends(get_stores)):
    return docs_out(stores.classes.find({"instructorEmail": email}))


@app.get("/classes-manage")
def manage_classes(stores: Stores = Depends(get_stores)):
    return docs_out(stores.classes.find())


@app.patch("/change-status/{class_id}", dependencies=[Depends(verify_admin)])
def change_status(class_id: str, body: StatusChange, stores: Stores = Depends(get_stores)):
    update = {"status": body.status, "reason": body.reason}
    res = stores.classes.update_one({"_id": object_id(class_id)}, {"$set": update}, upsert=True)
    logger.info("Class %s set to %s", class_id, body.status)
    return update_result(res)


@app.get("/approved-classes")
def approved_classes(stores: Stores = Depends(get_stores)):
    return docs_out(stores.classes.find({"status": "approved"}))


@app.get("/class/{class_id}")
def get_class(class_id: str, stores: Stores = Depends(get_stores)):
    return found(stores.classes.find_one({"_id": object_id(class_id)}), "Class")


@app.put("/update-class/{class_id}", dependencies=[Depends(verify_instructor)])
def update_class(class_id: str, body: UpdateClassBody, stores: Stores = Depends(get_stores)):
    # Any edit sends the class back for review
    update = {
        "name": body.name,
        "description": body.description,
        "price": body.price,
        "availableSeats": body.availableSeats,
        "videoLink": body.videoLink,
        "status": "pending",
    }
    res = stores.classes.update_one({"_id": object_id(class_id)}, {"$set": update}, upsert=True)
    return update_result(res)


# Cart Endpoints
@app.post("/add-to-cart")
def add_to_cart(body: CartItem, decoded: dict = Depends(verify_jwt), stores: Stores = Depends(get_stores)):
    if stores.classes.find_one({"_id": object_id(body.classId)}, {"_id": 1}) is None:
        raise HTTPException(404, "Class not found")
    doc = body.model_dump()
    doc["userMail"] = doc.get("userMail") or decoded.get("email")
    # No dedup: adding the same class twice stores two rows
    res = stores.cart.insert_one(doc)
    return insert_result(res)


@app.get("/cart-item/{class_id}")
def get_cart_item(
    class_id: str,
    email: Optional[str] = None,
    decoded: dict = Depends(verify_jwt),
    stores: Stores = Depends(get_stores),
):
    query = {"classId": class_id, "userMail": email or decoded.get("email")}
    return doc_out(stores.cart.find_one(query, {"classId": 1}))


@app.get("/cart/{email}", dependencies=[Depends(verify_jwt)])
def get_cart(email: str, stores: Stores = Depends(get_stores)):
    carts = stores.cart.find({"userMail": email}, {"classId": 1})
    class_ids = [ObjectId(c["classId"]) for c in carts if ObjectId.is_valid(c.get("classId", ""))]
    return docs_out(stores.classes.find({"_id": {"$in": class_ids}}))


@app.delete("/delete-cart-item/{class_id}")
def delete_cart_item(class_id: str, decoded: dict = Depends(verify_jwt), stores: Stores = Depends(get_stores)):
    res = stores.cart.delete_one({"classId": class_id, "userMail": decoded.get("email")})
    return delete_result(res)


# Enrollment Endpoints
@app.get("/popular_classes")
def popular_classes(stores: Stores = Depends(get_stores)):
    return docs_out(aggregations.popular_classes(stores))


@app.get("/popular-instructors")
def popular_instructors(stores: Stores = Depends(get_stores)):
    return docs_out(aggregations.popular_instructors(stores))


@app.get("/enrolled-classes/{email}", dependencies=[Depends(verify_jwt)])
def enrolled_classes(email: str, stores: Stores = Depends(get_stores)):
    return docs_out(aggregations.enrolled_classes(stores, email))


@app.get("/admin-stats", dependencies=[Depends(verify_admin)])
def admin_stats(stores: Stores = Depends(get_stores)):
    return aggregations.admin_stats(stores)


# Instructor Applications
@app.post("/ass-instructor")
def apply_instructor(body: AppliedInstructor, stores: Stores = Depends(get_stores)):
    res = stores.applied.insert_one(body.model_dump())
    return insert_result(res)


@app.get("/applied-instructors/{email}")
def applied_instructor(email: str, stores: Stores = Depends(get_stores)):
    return doc_out(stores.applied.find_one({"email": email}))


@app.get("/")
def read_root():
    return {"message": "Course Marketplace API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": database.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is None:
        response["database_url"] = "❌ Not Set"
        return response
    response["database_url"] = "✅ Set"
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
