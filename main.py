import logging
import time
from typing import Literal, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, EmailStr, Field

import config
import database
import notifications
import orders
import payments
from auth import clear_session_cookie, require, set_session_cookie, verify_token
from database import delete_ack, get_db, get_documents, insert_ack, now_utc, serialize_doc, update_ack
from errors import (
    AlreadyRequestedError,
    InsufficientStockError,
    InvalidIdError,
    InvalidStatusTransitionError,
    OrderDeliveredError,
    OrderNotFoundError,
    PaymentAlreadyUsedError,
    PaymentError,
    PaymentNotCompletedError,
    PlantNetError,
    PlantNotFoundError,
    UserNotFoundError,
)
from schemas import OrderStatus, Person, Role, UserStatus

logger = logging.getLogger("plantnet")

app = FastAPI(title="plantNet API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_indexes():
    if database.db is not None:
        database.ensure_indexes(database.db)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


# ---------------------- Errors ----------------------

ERROR_STATUS_CODES: dict[type, int] = {
    InvalidIdError: 400,
    UserNotFoundError: 400,
    PlantNotFoundError: 400,
    OrderNotFoundError: 400,
    AlreadyRequestedError: 400,
    PaymentNotCompletedError: 402,
    OrderDeliveredError: 409,
    InsufficientStockError: 409,
    InvalidStatusTransitionError: 409,
    PaymentAlreadyUsedError: 409,
    PaymentError: 502,
}


@app.exception_handler(PlantNetError)
async def plantnet_error_handler(request: Request, exc: PlantNetError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    if isinstance(exc, (OrderDeliveredError, AlreadyRequestedError)):
        return PlainTextResponse(str(exc), status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# ---------------------- Models ----------------------

class TokenBody(BaseModel):
    email: EmailStr


class UserBody(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None


class RoleBody(BaseModel):
    role: Role


class PlantBody(BaseModel):
    name: str
    category: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    image: Optional[str] = None


class QuantityBody(BaseModel):
    quantityDelta: int = Field(..., ge=1)
    direction: Literal["increase", "decrease"] = "decrease"


class PaymentIntentBody(BaseModel):
    plantId: str
    quantity: int = Field(..., ge=1)


class OrderBody(BaseModel):
    plantId: str
    quantity: int = Field(..., ge=1)
    customer: Person
    address: str
    transactionId: str


class StatusBody(BaseModel):
    status: OrderStatus


# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return PlainTextResponse("Hello from plantNet Server..")


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    db = database.db
    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = db.name
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


@app.get("/schema")
def get_schema():
    import schemas as s

    def model_fields(m):
        return {k: str(v.annotation) for k, v in m.model_fields.items()}
    return {
        "models": {
            "users": model_fields(s.User),
            "plants": model_fields(s.Plant),
            "orders": model_fields(s.Order),
        }
    }


# ---------------------- Auth ----------------------

@app.post("/jwt")
def create_token(body: TokenBody, response: Response):
    set_session_cookie(response, str(body.email))
    return {"success": True}


@app.get("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}


# ---------------------- Users ----------------------

@app.post("/users/{email}")
def save_user(email: str, body: UserBody, db=Depends(get_db)):
    existing = db["users"].find_one({"email": email})
    if existing:
        return serialize_doc(existing)
    res = db["users"].insert_one({
        **body.model_dump(),
        "email": email,
        "role": Role.CUSTOMER.value,
        "created_at": now_utc(),
    })
    logger.info("New user %s", email)
    return insert_ack(res)


@app.patch("/users/{email}")
def request_seller(email: str, claims: dict = Depends(verify_token), db=Depends(get_db)):
    if claims["email"] != email:
        raise HTTPException(status_code=403, detail="forbidden access")
    user = db["users"].find_one({"email": email})
    if not user:
        raise UserNotFoundError(email)
    if user.get("status") == UserStatus.REQUESTED.value:
        raise AlreadyRequestedError(email)
    res = db["users"].update_one({"email": email}, {"$set": {"status": UserStatus.REQUESTED.value}})
    return update_ack(res)


@app.get("/users/role/{email}")
def get_role(email: str, db=Depends(get_db)):
    user = db["users"].find_one({"email": email})
    return {"role": user.get("role") if user else None}


@app.get("/all-users/{email}")
def list_users(email: str, claims: dict = Depends(require("manage_users")), db=Depends(get_db)):
    return [serialize_doc(u) for u in db["users"].find({"email": {"$ne": email}})]


@app.patch("/user/role/{email}")
def update_role(email: str, body: RoleBody, claims: dict = Depends(require("manage_users")),
                db=Depends(get_db)):
    res = db["users"].update_one(
        {"email": email},
        {"$set": {"role": body.role.value, "status": UserStatus.VERIFIED.value}},
    )
    if res.matched_count == 0:
        raise UserNotFoundError(email)
    logger.info("%s set role of %s to %s", claims["email"], email, body.role.value)
    return update_ack(res)


# ---------------------- Plants ----------------------

@app.post("/plants")
def add_plant(body: PlantBody, claims: dict = Depends(require("manage_plants")), db=Depends(get_db)):
    seller = db["users"].find_one({"email": claims["email"]}) or {}
    doc = body.model_dump()
    doc["seller"] = {
        "name": seller.get("name"),
        "email": claims["email"],
        "image": seller.get("image"),
    }
    doc["created_at"] = now_utc()
    return insert_ack(db["plants"].insert_one(doc))


@app.get("/plants")
def list_plants(db=Depends(get_db)):
    return [serialize_doc(p) for p in get_documents("plants", database=db)]


@app.get("/plants/seller")
def seller_inventory(claims: dict = Depends(require("manage_plants")), db=Depends(get_db)):
    return [serialize_doc(p) for p in get_documents("plants", {"seller.email": claims["email"]}, database=db)]


@app.get("/plants/{plant_id}")
def get_plant(plant_id: str, db=Depends(get_db)):
    return serialize_doc(orders.get_plant(db, plant_id))


@app.delete("/plants/{plant_id}")
def delete_plant(plant_id: str, claims: dict = Depends(require("manage_plants")), db=Depends(get_db)):
    res = db["plants"].delete_one({"_id": orders.oid(plant_id), "seller.email": claims["email"]})
    if res.deleted_count == 0:
        raise PlantNotFoundError(plant_id)
    return delete_ack(res)


@app.patch("/plants/quantity/{plant_id}")
def update_quantity(plant_id: str, body: QuantityBody, claims: dict = Depends(verify_token),
                    db=Depends(get_db)):
    res = orders.adjust_quantity(db, plant_id, body.quantityDelta, body.direction)
    return update_ack(res)


# ---------------------- Checkout & Payments (Stripe) ----------------------

@app.post("/create-payment-intent")
def create_payment_intent(body: PaymentIntentBody, claims: dict = Depends(verify_token),
                          db=Depends(get_db)):
    plant = orders.get_plant(db, body.plantId)
    available = int(plant.get("quantity", 0))
    if body.quantity > available:
        raise InsufficientStockError(body.plantId, body.quantity, available)
    amount = orders.quote(plant, body.quantity)
    client_secret = payments.create_payment_intent(
        amount, metadata={"plantId": str(plant["_id"]), "customer": claims["email"]}
    )
    return {"clientSecret": client_secret}


# ---------------------- Orders ----------------------

@app.post("/order")
def place_order(body: OrderBody, background_tasks: BackgroundTasks,
                claims: dict = Depends(verify_token), db=Depends(get_db)):
    plant = orders.get_plant(db, body.plantId)
    payments.ensure_succeeded(body.transactionId, orders.quote(plant, body.quantity), str(plant["_id"]))
    data = body.model_dump()
    data["customer"]["email"] = claims["email"]
    order_id, doc, plant = orders.place_order(db, data)
    background_tasks.add_task(notifications.send_order_confirmation, doc, plant.get("name"))
    background_tasks.add_task(notifications.send_seller_alert, doc, plant.get("name"))
    return {"acknowledged": True, "insertedId": order_id}


@app.get("/customer-orders/{email}")
def customer_orders(email: str, claims: dict = Depends(verify_token), db=Depends(get_db)):
    if claims["email"] != email:
        raise HTTPException(status_code=403, detail="forbidden access")
    return orders.customer_orders(db, email)


@app.get("/seller-orders/{email}")
def seller_orders(email: str, claims: dict = Depends(require("view_sales")), db=Depends(get_db)):
    if claims["email"] != email:
        raise HTTPException(status_code=403, detail="forbidden access")
    return orders.seller_orders(db, email)


@app.delete("/orders/{order_id}")
def cancel_order(order_id: str, claims: dict = Depends(verify_token), db=Depends(get_db)):
    order = orders.get_order(db, order_id)
    if claims["email"] not in ((order.get("customer") or {}).get("email"), order.get("seller")):
        raise HTTPException(status_code=403, detail="forbidden access")
    return orders.cancel_order(db, order_id)


@app.patch("/orders/{order_id}")
def update_order_status(order_id: str, body: StatusBody,
                        claims: dict = Depends(require("update_order_status")), db=Depends(get_db)):
    if orders.get_order(db, order_id).get("seller") != claims["email"]:
        raise HTTPException(status_code=403, detail="forbidden access")
    return orders.update_status(db, order_id, body.status.value)


# ---------------------- Admin ----------------------

@app.get("/admin-stat")
def admin_stat(claims: dict = Depends(require("view_stats")), db=Depends(get_db)):
    return orders.admin_stats(db)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
