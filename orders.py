"""
Order lifecycle and inventory workflow.

Placement and cancellation each touch two collections. Without a
multi-document transaction they run as a short saga: the second write is
compensated by undoing the first when it fails, so callers see one unit.
"""
import logging
from typing import Any, Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import create_document, delete_ack, serialize_doc, update_ack
from errors import (
    InsufficientStockError,
    InvalidIdError,
    InvalidStatusTransitionError,
    OrderDeliveredError,
    OrderNotFoundError,
    PaymentAlreadyUsedError,
    PlantNotFoundError,
)
from schemas import OrderStatus

logger = logging.getLogger(__name__)

INCREASE = "increase"
DECREASE = "decrease"

# allowed target statuses per current status; Delivered is terminal
ORDER_STATUS_FLOW: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidIdError(id_str)


# ---------------------- Inventory ----------------------

def adjust_quantity(db, plant_id: str, delta: int, direction: str = DECREASE):
    """Atomically move a plant's stock by `delta`.

    A decrease only matches while enough stock remains, so the counter can
    never go below zero. Returns the pymongo UpdateResult.
    """
    _id = oid(plant_id)
    if direction == INCREASE:
        result = db["plants"].update_one({"_id": _id}, {"$inc": {"quantity": delta}})
        if result.matched_count == 0:
            raise PlantNotFoundError(plant_id)
        return result

    result = db["plants"].update_one(
        {"_id": _id, "quantity": {"$gte": delta}},
        {"$inc": {"quantity": -delta}},
    )
    if result.matched_count == 0:
        plant = db["plants"].find_one({"_id": _id}, {"quantity": 1})
        if plant is None:
            raise PlantNotFoundError(plant_id)
        raise InsufficientStockError(plant_id, delta, int(plant.get("quantity", 0)))
    return result


# ---------------------- Order state ----------------------

def get_plant(db, plant_id: str) -> Dict[str, Any]:
    plant = db["plants"].find_one({"_id": oid(plant_id)})
    if plant is None:
        raise PlantNotFoundError(plant_id)
    return plant


def quote(plant: Dict[str, Any], quantity: int) -> float:
    return round(float(plant.get("price", 0)) * quantity, 2)


def place_order(db, order: Dict[str, Any]):
    """Reserve stock and record a Pending order.

    `order` carries plantId, quantity, customer, address and transactionId;
    seller and price are filled from the plant. Returns (order_id, doc, plant).
    """
    plant = get_plant(db, order["plantId"])
    quantity = int(order["quantity"])
    doc = {
        **order,
        "plantId": str(plant["_id"]),
        "seller": (plant.get("seller") or {}).get("email"),
        "quantity": quantity,
        "price": quote(plant, quantity),
        "status": OrderStatus.PENDING.value,
    }

    transaction_id = doc.get("transactionId")
    if transaction_id and db["orders"].find_one({"transactionId": transaction_id}, {"_id": 1}):
        raise PaymentAlreadyUsedError(transaction_id)

    adjust_quantity(db, doc["plantId"], quantity, DECREASE)
    try:
        order_id = create_document("orders", doc, database=db)
    except PyMongoError as exc:
        logger.error("Order insert failed, returning %s units to plant %s", quantity, doc["plantId"])
        try:
            adjust_quantity(db, doc["plantId"], quantity, INCREASE)
        except Exception as undo_exc:
            logger.error("Could not return %s units to plant %s: %s", quantity, doc["plantId"], undo_exc)
        if isinstance(exc, DuplicateKeyError) and transaction_id:
            raise PaymentAlreadyUsedError(transaction_id) from exc
        raise
    logger.info("Order %s placed: %s x plant %s by %s", order_id, quantity, doc["plantId"],
                (doc.get("customer") or {}).get("email"))
    return order_id, doc, plant


def get_order(db, order_id: str) -> Dict[str, Any]:
    order = db["orders"].find_one({"_id": oid(order_id)})
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def cancel_order(db, order_id: str) -> Dict[str, Any]:
    """Delete an order that has not been delivered and restock its plant."""
    _id = oid(order_id)
    order = db["orders"].find_one({"_id": _id})
    if order is None:
        raise OrderNotFoundError(order_id)
    if order.get("status") == OrderStatus.DELIVERED.value:
        raise OrderDeliveredError(order_id)

    result = db["orders"].delete_one({"_id": _id, "status": {"$ne": OrderStatus.DELIVERED.value}})
    if result.deleted_count == 0:
        # delivered or removed between the read and the delete
        if db["orders"].find_one({"_id": _id}) is None:
            raise OrderNotFoundError(order_id)
        raise OrderDeliveredError(order_id)

    try:
        adjust_quantity(db, order["plantId"], int(order["quantity"]), INCREASE)
    except (PlantNotFoundError, InvalidIdError):
        logger.warning("Plant %s no longer exists, order %s cancelled without restock",
                       order.get("plantId"), order_id)
    except PyMongoError:
        logger.error("Restock failed for order %s, restoring the order", order_id)
        try:
            db["orders"].insert_one(order)
        except Exception as undo_exc:
            logger.error("Could not restore cancelled order %s: %s", order_id, undo_exc)
        raise
    logger.info("Order %s cancelled, %s units back to plant %s", order_id, order["quantity"], order["plantId"])
    return delete_ack(result)


def can_transition(current: str, target: str) -> bool:
    try:
        current_status = OrderStatus(current)
    except ValueError:
        # unknown legacy value, let the seller put it back on the track
        return True
    return OrderStatus(target) in ORDER_STATUS_FLOW[current_status]


def update_status(db, order_id: str, status: str) -> Dict[str, Any]:
    """Move an order to `status`; re-setting the current status is a no-op."""
    target = OrderStatus(status).value
    _id = oid(order_id)
    order = db["orders"].find_one({"_id": _id}, {"status": 1})
    if order is None:
        raise OrderNotFoundError(order_id)
    current = order.get("status")
    if current == target:
        return {"acknowledged": True, "matchedCount": 1, "modifiedCount": 0}
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current, target)

    result = db["orders"].update_one({"_id": _id, "status": current}, {"$set": {"status": target}})
    if result.matched_count == 0:
        latest = db["orders"].find_one({"_id": _id}, {"status": 1})
        if latest is None:
            raise OrderNotFoundError(order_id)
        raise InvalidStatusTransitionError(latest.get("status"), target)
    logger.info("Order %s moved from %s to %s", order_id, current, target)
    return update_ack(result)


# ---------------------- Read models ----------------------

# orders keep plantId as a string; plants are keyed by ObjectId
COERCE_PLANT_ID = {"$addFields": {"plantId": {"$toObjectId": "$plantId"}}}


def order_listing_pipeline(match: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        COERCE_PLANT_ID,
        {"$lookup": {
            "from": "plants",
            "localField": "plantId",
            "foreignField": "_id",
            "as": "plants",
        }},
        {"$unwind": "$plants"},
        {"$addFields": {
            "name": "$plants.name",
            "image": "$plants.image",
            "category": "$plants.category",
        }},
        {"$project": {"plants": 0}},
    ]


def customer_orders(db, email: str) -> List[Dict[str, Any]]:
    pipeline = order_listing_pipeline({"customer.email": email})
    return [serialize_doc(o) for o in db["orders"].aggregate(pipeline)]


def seller_orders(db, email: str) -> List[Dict[str, Any]]:
    pipeline = order_listing_pipeline({"seller": email})
    return [serialize_doc(o) for o in db["orders"].aggregate(pipeline)]


# ---------------------- Admin statistics ----------------------

SALES_CHART_PIPELINE = [
    {"$group": {
        "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
        "quantity": {"$sum": "$quantity"},
        "price": {"$sum": "$price"},
        "order": {"$sum": 1},
    }},
    {"$project": {"_id": 0, "date": "$_id", "quantity": 1, "price": 1, "order": 1}},
    {"$sort": {"date": 1}},
]

ORDER_TOTALS_PIPELINE = [
    {"$group": {"_id": None, "totalRevenue": {"$sum": "$price"}, "totalOrders": {"$sum": 1}}},
]


def sales_chart(db) -> List[Dict[str, Any]]:
    return list(db["orders"].aggregate(SALES_CHART_PIPELINE))


def order_totals(db) -> Dict[str, Any]:
    rows = list(db["orders"].aggregate(ORDER_TOTALS_PIPELINE))
    if not rows:
        return {"totalRevenue": 0, "totalOrders": 0}
    return {"totalRevenue": rows[0]["totalRevenue"], "totalOrders": rows[0]["totalOrders"]}


def admin_stats(db) -> Dict[str, Any]:
    totals = order_totals(db)
    return {
        "totalUser": db["users"].count_documents({}),
        "totalPlants": db["plants"].count_documents({}),
        "totalOrders": totals["totalOrders"],
        "totalRevenue": totals["totalRevenue"],
        "chartData": sales_chart(db),
    }
