"""
User directory: registration, login and admin user management.

Stored user documents carry `password_hash`; it is stripped from every
representation that leaves this module.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from access_gate import require_admin
from database import get_db, to_object_id, doc_to_json, get_documents
from schemas import UserRegister, UserCreate, UserLogin, LoginResponse
from security import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)

USER = "user"
PRIVATE_FIELDS = ("password_hash",)

router = APIRouter(tags=["users"])


def public_user(doc: dict) -> dict:
    out = doc_to_json(doc)
    if out:
        for field in PRIVATE_FIELDS:
            out.pop(field, None)
    return out


class EmailAlreadyRegistered(Exception):
    pass


def store_user(db, data: dict, password: str, is_admin: bool) -> dict:
    """Insert a user; the unique index on `email` settles concurrent signups."""
    if db[USER].find_one({"email": data["email"]}):
        raise EmailAlreadyRegistered(data["email"])
    doc = {
        **data,
        "password_hash": get_password_hash(password),
        "is_admin": is_admin,
        "date_created": datetime.now(timezone.utc),
    }
    try:
        doc["_id"] = db[USER].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise EmailAlreadyRegistered(data["email"])
    logger.info("Created user %s (admin=%s)", doc["_id"], is_admin)
    return doc


def register_user(db, payload: UserRegister) -> dict:
    data = payload.model_dump(exclude={"password", "is_admin"})
    return store_user(db, data, payload.password, is_admin=False)


def admin_create_user(db, payload: UserCreate) -> dict:
    data = payload.model_dump(exclude={"password", "is_admin"})
    return store_user(db, data, payload.password, is_admin=payload.is_admin)


@router.post("/register")
def register(payload: UserRegister, db=Depends(get_db)):
    try:
        return public_user(register_user(db, payload))
    except EmailAlreadyRegistered:
        raise HTTPException(status_code=400, detail="Email already registered")


@router.post("/login", response_model=LoginResponse)
def login(payload: UserLogin, db=Depends(get_db)):
    user = db[USER].find_one({"email": payload.email})
    # same answer whether the email or the password was wrong
    if not verify_password(payload.password, user.get("password_hash") if user else None):
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    token = create_access_token(str(user["_id"]), user.get("is_admin", False))
    return LoginResponse(user=user["email"], token=token)


@router.get("", dependencies=[Depends(require_admin)])
def list_users(db=Depends(get_db)):
    return [public_user(u) for u in get_documents(db, USER)]


@router.get("/get/count", dependencies=[Depends(require_admin)])
def count_users(db=Depends(get_db)):
    return {"user_count": db[USER].count_documents({})}


@router.get("/{user_id}", dependencies=[Depends(require_admin)])
def get_user(user_id: str, db=Depends(get_db)):
    user = db[USER].find_one({"_id": to_object_id(user_id)})
    if not user:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found")
    return public_user(user)


@router.post("", dependencies=[Depends(require_admin)])
def create_user(payload: UserCreate, db=Depends(get_db)):
    try:
        return public_user(admin_create_user(db, payload))
    except EmailAlreadyRegistered:
        raise HTTPException(status_code=400, detail="Email already registered")


@router.delete("/{user_id}", dependencies=[Depends(require_admin)])
def delete_user(user_id: str, db=Depends(get_db)):
    res = db[USER].delete_one({"_id": to_object_id(user_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="user not found!")
    return {"success": True, "message": "the user is deleted!"}
