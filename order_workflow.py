"""
Order workflow.

Creating an order writes one "orderitem" document per cart line, prices every
line from the catalog as it stands right now, and then writes the "order"
document referencing those items with the summed total. The total is a
snapshot: later price changes never touch stored orders.

There is no multi-document transaction. If pricing or the order insert fails
after items were written, the items created so far are deleted again
(compensating step) and the original error is raised.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

import catalog
from database import is_valid_object_id

logger = logging.getLogger(__name__)

ORDER = "order"
ORDER_ITEM = "orderitem"
USER = "user"


class OrderError(Exception):
    pass


class OrderNotFound(OrderError):
    pass


class OrderItemCreationError(OrderError):
    pass


class ProductPriceUnavailable(OrderError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} is not available")
        self.product_id = product_id


class InvalidOrderUser(OrderError):
    pass


def _as_object_id(value, error: Exception) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not is_valid_object_id(value):
        raise error
    return ObjectId(value)


def create_order_items(db, cart: Sequence[dict]) -> List[dict]:
    """Persist one order item per cart line, in cart order.

    On failure the items already written are removed before the error
    propagates.
    """
    created = []
    try:
        for line in cart:
            product_id = _as_object_id(
                line["product"], OrderItemCreationError(f"Invalid product id {line['product']}")
            )
            quantity = int(line["quantity"])
            if quantity < 1:
                raise OrderItemCreationError(f"Invalid quantity {quantity}")
            item = {"quantity": quantity, "product": product_id}
            item["_id"] = db[ORDER_ITEM].insert_one(item).inserted_id
            created.append(item)
    except (OrderItemCreationError, PyMongoError):
        rollback_order_items(db, [i["_id"] for i in created])
        raise
    return created


def line_totals(db, items: Sequence[dict]) -> List[float]:
    totals = []
    for item in items:
        price = catalog.product_price(db, item["product"])
        if price is None:
            raise ProductPriceUnavailable(item["product"])
        totals.append(item["quantity"] * price)
    return totals


def rollback_order_items(db, item_ids: Sequence[ObjectId]) -> None:
    if not item_ids:
        return
    try:
        result = db[ORDER_ITEM].delete_many({"_id": {"$in": list(item_ids)}})
        logger.warning("Rolled back %d orphaned order item(s)", result.deleted_count)
    except PyMongoError:
        logger.exception("Could not roll back order items %s", [str(i) for i in item_ids])


def create_order(db, cart: Sequence[dict], shipping: dict, user_id, status: str = "Pending") -> dict:
    """Run the whole workflow and return the stored order document.

    An empty cart yields an order with total 0.
    """
    user_oid = _as_object_id(user_id, InvalidOrderUser("Invalid user"))
    if db[USER].find_one({"_id": user_oid}, {"_id": 1}) is None:
        raise InvalidOrderUser("Invalid user")

    items = create_order_items(db, cart)
    item_ids = [i["_id"] for i in items]
    try:
        total_price = sum(line_totals(db, items), 0)
        order = {
            "order_items": item_ids,
            "shipping_address1": shipping.get("shipping_address1"),
            "shipping_address2": shipping.get("shipping_address2"),
            "city": shipping.get("city"),
            "zip": shipping.get("zip"),
            "country": shipping.get("country"),
            "phone": shipping.get("phone"),
            "status": status,
            "total_price": total_price,
            "user": user_oid,
            "date_ordered": datetime.now(timezone.utc),
        }
        order["_id"] = db[ORDER].insert_one(order).inserted_id
    except (OrderError, PyMongoError):
        rollback_order_items(db, item_ids)
        raise
    logger.info("Created order %s with %d item(s), total %s", order["_id"], len(item_ids), total_price)
    return order


def delete_order(db, order_id) -> int:
    """Remove the order, then its items one by one.

    Items that are already gone are logged and skipped; returns how many
    items were removed.
    """
    oid = _as_object_id(order_id, OrderNotFound("order not found!"))
    order = db[ORDER].find_one_and_delete({"_id": oid})
    if order is None:
        raise OrderNotFound("order not found!")
    removed = 0
    for item_id in order.get("order_items", []):
        try:
            if db[ORDER_ITEM].delete_one({"_id": item_id}).deleted_count:
                removed += 1
            else:
                logger.warning("Could not find and delete order item %s", item_id)
        except PyMongoError:
            logger.exception("Could not delete order item %s", item_id)
    return removed


def update_order_status(db, order_id, status: str) -> dict:
    oid = _as_object_id(order_id, OrderNotFound("the order cannot be found!"))
    order = db[ORDER].find_one_and_update(
        {"_id": oid}, {"$set": {"status": status}}, return_document=ReturnDocument.AFTER
    )
    if order is None:
        raise OrderNotFound("the order cannot be found!")
    return order


def total_sales(db) -> float:
    rows = list(db[ORDER].aggregate([
        {"$group": {"_id": None, "total_sales": {"$sum": "$total_price"}}},
    ]))
    # no orders -> no group at all
    if not rows:
        return 0
    return rows[0]["total_sales"]


def count_orders(db) -> int:
    return db[ORDER].count_documents({})


def find_order(db, order_id) -> Optional[dict]:
    if not is_valid_object_id(order_id):
        return None
    return db[ORDER].find_one({"_id": ObjectId(order_id)})
