from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from access_gate import require_admin
from catalog import CATEGORY
from database import get_db, to_object_id, doc_to_json, create_document, get_documents
from schemas import CategoryIn

router = APIRouter(tags=["categories"])


@router.get("")
def list_categories(db=Depends(get_db)):
    return [doc_to_json(c) for c in get_documents(db, CATEGORY)]


@router.get("/{category_id}")
def get_category(category_id: str, db=Depends(get_db)):
    category = db[CATEGORY].find_one({"_id": to_object_id(category_id)})
    if not category:
        raise HTTPException(status_code=404, detail="The category with the given ID was not found")
    return doc_to_json(category)


@router.post("", dependencies=[Depends(require_admin)])
def create_category(payload: CategoryIn, db=Depends(get_db)):
    return doc_to_json(create_document(db, CATEGORY, payload.model_dump()))


@router.put("/{category_id}", dependencies=[Depends(require_admin)])
def update_category(category_id: str, payload: CategoryIn, db=Depends(get_db)):
    category = db[CATEGORY].find_one_and_update(
        {"_id": to_object_id(category_id)},
        {"$set": payload.model_dump()},
        return_document=ReturnDocument.AFTER,
    )
    if not category:
        raise HTTPException(status_code=404, detail="the category cannot be updated!")
    return doc_to_json(category)


# Products that reference a deleted category are left as they are.
@router.delete("/{category_id}", dependencies=[Depends(require_admin)])
def delete_category(category_id: str, db=Depends(get_db)):
    res = db[CATEGORY].delete_one({"_id": to_object_id(category_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="category not found!")
    return {"success": True, "message": "the category is deleted!"}
