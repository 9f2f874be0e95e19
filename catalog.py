"""
Catalog store: categories and products in MongoDB.

Products keep their category as an ObjectId reference; reads resolve it into
the full category document (a read-time join, nothing is denormalized).
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from database import doc_to_json, is_valid_object_id

CATEGORY = "category"
PRODUCT = "product"


class InvalidCategory(Exception):
    pass


def parse_category_filter(raw: Optional[str]) -> Optional[List[ObjectId]]:
    """`"id1,id2"` -> list of ObjectIds. Malformed ids are an InvalidCategory."""
    if not raw:
        return None
    ids = [part.strip() for part in raw.split(",") if part.strip()]
    if not ids:
        return None
    if not all(is_valid_object_id(i) for i in ids):
        raise InvalidCategory("Invalid category filter")
    return [ObjectId(i) for i in ids]


def find_category(db, category_id) -> Optional[dict]:
    if not is_valid_object_id(category_id):
        return None
    return db[CATEGORY].find_one({"_id": ObjectId(category_id)})


def ensure_category(db, category_id) -> ObjectId:
    category = find_category(db, category_id)
    if category is None:
        raise InvalidCategory("Invalid Category")
    return category["_id"]


def populate_categories(db, products: Iterable[dict]) -> List[dict]:
    """Serialize products with `category` replaced by the category document
    (or None when it has been deleted)."""
    products = list(products)
    ids = {p.get("category") for p in products if isinstance(p.get("category"), ObjectId)}
    categories = {}
    if ids:
        categories = {c["_id"]: c for c in db[CATEGORY].find({"_id": {"$in": list(ids)}})}
    out = []
    for p in products:
        item = doc_to_json(p)
        item["category"] = doc_to_json(categories.get(p.get("category")))
        out.append(item)
    return out


def list_products(db, category_ids: Optional[List[ObjectId]] = None) -> List[dict]:
    query = {}
    if category_ids:
        query["category"] = {"$in": category_ids}
    return populate_categories(db, db[PRODUCT].find(query))


def get_product(db, product_id) -> Optional[dict]:
    if not is_valid_object_id(product_id):
        return None
    product = db[PRODUCT].find_one({"_id": ObjectId(product_id)})
    if product is None:
        return None
    return populate_categories(db, [product])[0]


def featured_products(db, limit: int = 0) -> List[dict]:
    # limit 0 means no limit, same as the cursor's own semantics
    cursor = db[PRODUCT].find({"is_featured": True})
    if limit:
        cursor = cursor.limit(limit)
    return [doc_to_json(p) for p in cursor]


def count_products(db) -> int:
    return db[PRODUCT].count_documents({})


def create_product(db, data: dict) -> dict:
    doc = dict(data)
    doc["category"] = ensure_category(db, doc.get("category"))
    doc["date_created"] = datetime.now(timezone.utc)
    doc["_id"] = db[PRODUCT].insert_one(doc).inserted_id
    return doc


def replace_product(db, product_id: ObjectId, data: dict) -> Optional[dict]:
    """Overwrite every editable field; returns the new document or None."""
    fields = dict(data)
    fields["category"] = ensure_category(db, fields.get("category"))
    return db[PRODUCT].find_one_and_update(
        {"_id": product_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
    )


def set_gallery(db, product_id: ObjectId, image_urls: List[str]) -> Optional[dict]:
    return db[PRODUCT].find_one_and_update(
        {"_id": product_id}, {"$set": {"images": image_urls}}, return_document=ReturnDocument.AFTER
    )


def delete_product(db, product_id: ObjectId) -> bool:
    return db[PRODUCT].delete_one({"_id": product_id}).deleted_count == 1


def product_price(db, product_id) -> Optional[float]:
    """Current unit price of a product, or None when the product is gone."""
    product = db[PRODUCT].find_one({"_id": product_id}, {"price": 1})
    if product is None or product.get("price") is None:
        return None
    return float(product["price"])
