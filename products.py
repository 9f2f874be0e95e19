from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Request, UploadFile

import catalog
import uploads
from access_gate import require_admin
from database import get_db, to_object_id, doc_to_json
from schemas import ProductIn

router = APIRouter(tags=["products"])

# largest featured page served in one request
MAX_FEATURED = 1000


def _category_filter(categories: Optional[str], category: Optional[str]):
    try:
        return catalog.parse_category_filter(categories or category)
    except catalog.InvalidCategory as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("")
def list_products(categories: Optional[str] = None, category: Optional[str] = None, db=Depends(get_db)):
    return catalog.list_products(db, _category_filter(categories, category))


@router.get("/get/count")
def count_products(db=Depends(get_db)):
    return {"count": catalog.count_products(db)}


@router.get("/get/featured/{count}")
def featured_products(count: int = Path(..., ge=0, le=MAX_FEATURED), db=Depends(get_db)):
    return catalog.featured_products(db, count)


@router.get("/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    product = catalog.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("", dependencies=[Depends(require_admin)])
def create_product(
    request: Request,
    name: str = Form(..., min_length=1),
    category: str = Form(...),
    count_in_stock: int = Form(..., ge=0, le=255),
    description: str = Form(""),
    rich_description: str = Form(""),
    brand: str = Form(""),
    price: float = Form(0, ge=0),
    rating: float = Form(0),
    num_reviews: int = Form(0, ge=0),
    is_featured: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    db=Depends(get_db),
):
    payload = ProductIn(
        name=name, description=description, rich_description=rich_description,
        brand=brand, price=price, category=category, count_in_stock=count_in_stock,
        rating=rating, num_reviews=num_reviews, is_featured=is_featured,
    )
    if catalog.find_category(db, category) is None:
        raise HTTPException(status_code=400, detail="Invalid Category")
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="No image in the request")
    filename = uploads.save_image(image)
    payload.image = uploads.public_url(request, filename)
    try:
        product = catalog.create_product(db, payload.model_dump())
    except catalog.InvalidCategory:
        raise HTTPException(status_code=400, detail="Invalid Category")
    return doc_to_json(product)


@router.put("/gallery-images/{product_id}", dependencies=[Depends(require_admin)])
def update_gallery(
    product_id: str,
    request: Request,
    images: List[UploadFile] = File(default=[]),
    db=Depends(get_db),
):
    oid = to_object_id(product_id)
    if len(images) > uploads.MAX_GALLERY_IMAGES:
        raise HTTPException(status_code=400, detail=f"At most {uploads.MAX_GALLERY_IMAGES} images")
    uploads.check_images(images)
    if db[catalog.PRODUCT].find_one({"_id": oid}, {"_id": 1}) is None:
        raise HTTPException(status_code=404, detail="the gallery cannot be updated!")
    urls = [uploads.public_url(request, uploads.save_image(f)) for f in images]
    product = catalog.set_gallery(db, oid, urls)
    if product is None:
        raise HTTPException(status_code=404, detail="the gallery cannot be updated!")
    return doc_to_json(product)


@router.put("/{product_id}", dependencies=[Depends(require_admin)])
def update_product(product_id: str, payload: ProductIn, db=Depends(get_db)):
    oid = to_object_id(product_id)
    try:
        product = catalog.replace_product(db, oid, payload.model_dump())
    except catalog.InvalidCategory:
        raise HTTPException(status_code=400, detail="Invalid Category")
    if product is None:
        raise HTTPException(status_code=404, detail="the product cannot be updated!")
    return doc_to_json(product)


@router.delete("/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: str, db=Depends(get_db)):
    if not catalog.delete_product(db, to_object_id(product_id)):
        raise HTTPException(status_code=404, detail="product not found!")
    return {"success": True, "message": "the product is deleted!"}
