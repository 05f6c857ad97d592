"""Custom exceptions for plantNet."""


class PlantNetError(Exception):
    """Base exception for all plantNet domain errors."""

    pass


class InvalidIdError(PlantNetError):
    """Raised when a path id is not a valid ObjectId."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid id: {value}")


class UserNotFoundError(PlantNetError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User not found: {email}")


class PlantNotFoundError(PlantNetError):
    def __init__(self, plant_id: str):
        self.plant_id = plant_id
        super().__init__(f"Plant not found: {plant_id}")


class OrderNotFoundError(PlantNetError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class AlreadyRequestedError(PlantNetError):
    """Raised when a customer asks to become a seller twice."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("You have already requested, wait for some time.")


class OrderDeliveredError(PlantNetError):
    """Raised when cancelling an order that has already been delivered."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Cannot cancel once the product is delivered!")


class InsufficientStockError(PlantNetError):
    """Raised when a decrement would take a plant's stock below zero."""

    def __init__(self, plant_id: str, requested: int, available: int):
        self.plant_id = plant_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for plant {plant_id}: requested {requested}, available {available}"
        )


class InvalidStatusTransitionError(PlantNetError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from '{current}' to '{target}'")


class PaymentError(PlantNetError):
    """Raised when the payment gateway call itself fails."""

    pass


class PaymentNotCompletedError(PlantNetError):
    """Raised when an order references a charge that has not succeeded."""

    def __init__(self, transaction_id: str, status: str | None = None):
        self.transaction_id = transaction_id
        self.status = status
        msg = f"Payment {transaction_id} has not succeeded"
        if status:
            msg = f"{msg} (status: {status})"
        super().__init__(msg)


class PaymentAlreadyUsedError(PlantNetError):
    """Raised when a transaction id is already recorded on another order."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Payment {transaction_id} has already been used for an order")
