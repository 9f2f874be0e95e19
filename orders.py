from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import PyMongoError

import catalog
import order_workflow
from access_gate import Identity, get_identity
from database import get_db, to_object_id, doc_to_json, get_documents
from schemas import OrderCreate, OrderStatusUpdate
from users import USER, public_user

router = APIRouter(tags=["orders"], dependencies=[Depends(get_identity)])

NEWEST_FIRST = [("date_ordered", -1)]


def _users_by_id(db, orders: List[dict], projection: Optional[dict] = None) -> dict:
    ids = list({o["user"] for o in orders if isinstance(o.get("user"), ObjectId)})
    if not ids:
        return {}
    return {u["_id"]: u for u in db[USER].find({"_id": {"$in": ids}}, projection)}


def populate_user_names(db, orders: List[dict]) -> List[dict]:
    users = _users_by_id(db, orders, {"name": 1})
    out = []
    for o in orders:
        item = doc_to_json(o)
        item["user"] = public_user(users.get(o.get("user")))
        out.append(item)
    return out


def populate_orders(db, orders: List[dict]) -> List[dict]:
    """Resolve user, order items, their products and the products' categories."""
    users = _users_by_id(db, orders)
    item_ids = [i for o in orders for i in o.get("order_items", [])]
    items = {i["_id"]: i for i in db[order_workflow.ORDER_ITEM].find({"_id": {"$in": item_ids}})} if item_ids else {}
    product_ids = list({i["product"] for i in items.values()})
    products = {}
    if product_ids:
        found = db[catalog.PRODUCT].find({"_id": {"$in": product_ids}})
        products = {ObjectId(p["id"]): p for p in catalog.populate_categories(db, found)}

    out = []
    for o in orders:
        order = doc_to_json(o)
        order["user"] = public_user(users.get(o.get("user")))
        order["order_items"] = []
        for item_id in o.get("order_items", []):
            item = items.get(item_id)
            if item is None:
                continue
            populated = doc_to_json(item)
            populated["product"] = products.get(item["product"])
            order["order_items"].append(populated)
        out.append(order)
    return out


@router.get("")
def list_orders(db=Depends(get_db)):
    return populate_user_names(db, get_documents(db, order_workflow.ORDER, sort=NEWEST_FIRST))


@router.get("/get/totalsales")
def total_sales(db=Depends(get_db)):
    return {"total_sales": order_workflow.total_sales(db)}


@router.get("/get/count")
def count_orders(db=Depends(get_db)):
    return {"count": order_workflow.count_orders(db)}


@router.get("/userorders/{user_id}")
def user_orders(user_id: str, db=Depends(get_db)):
    orders = get_documents(db, order_workflow.ORDER, {"user": to_object_id(user_id)}, sort=NEWEST_FIRST)
    return populate_orders(db, orders)


@router.get("/{order_id}")
def get_order(order_id: str, db=Depends(get_db)):
    order = order_workflow.find_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return populate_orders(db, [order])[0]


@router.post("")
def create_order(payload: OrderCreate, identity: Identity = Depends(get_identity), db=Depends(get_db)):
    cart = [line.model_dump() for line in payload.order_items]
    shipping = payload.model_dump(exclude={"order_items", "status", "user"})
    try:
        order = order_workflow.create_order(
            db, cart, shipping, payload.user or identity.user_id, status=payload.status
        )
    except order_workflow.InvalidOrderUser as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except order_workflow.ProductPriceUnavailable as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except order_workflow.OrderItemCreationError:
        raise HTTPException(status_code=400, detail="the order cannot be created!")
    except PyMongoError:
        raise HTTPException(status_code=500, detail="the order cannot be created!")
    return doc_to_json(order)


@router.put("/{order_id}")
def update_order(order_id: str, payload: OrderStatusUpdate, db=Depends(get_db)):
    try:
        order = order_workflow.update_order_status(db, order_id, payload.status)
    except order_workflow.OrderNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except PyMongoError:
        raise HTTPException(status_code=500, detail="the order cannot be updated!")
    return doc_to_json(order)


@router.delete("/{order_id}")
def delete_order(order_id: str, db=Depends(get_db)):
    try:
        order_workflow.delete_order(db, order_id)
    except order_workflow.OrderNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"success": True, "message": "the order is deleted!"}
