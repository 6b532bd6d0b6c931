# /djula/models/actions.py

from enum import Enum
from typing import Dict, Any, List
from pydantic import BaseModel, Field


class ActionType(str, Enum):
    SHOW_PRODUCTS = "SHOW_PRODUCTS"
    SHOW_PRODUCT_DETAIL = "SHOW_PRODUCT_DETAIL"
    SHOW_SIMILAR_PRODUCTS = "SHOW_SIMILAR_PRODUCTS"
    SHOW_RECOMMENDATIONS = "SHOW_RECOMMENDATIONS"
    NO_PRODUCTS_FOUND = "NO_PRODUCTS_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CREATE_ORDER = "CREATE_ORDER"
    CANCEL_ORDER = "CANCEL_ORDER"
    CHECK_ORDER_STATUS = "CHECK_ORDER_STATUS"
    SHOW_RECENT_ORDERS = "SHOW_RECENT_ORDERS"
    NO_ORDERS_FOUND = "NO_ORDERS_FOUND"
    SHOW_PAYMENT_METHODS = "SHOW_PAYMENT_METHODS"
    PROCESS_PAYMENT = "PROCESS_PAYMENT"
    PAYMENT_METHOD_UNAVAILABLE = "PAYMENT_METHOD_UNAVAILABLE"
    NO_ACTIVE_ORDER = "NO_ACTIVE_ORDER"
    CREATE_SUPPORT_TICKET = "CREATE_SUPPORT_TICKET"
    UNKNOWN_INTENT = "UNKNOWN_INTENT"
    END_CONVERSATION = "END_CONVERSATION"
    SESSION_TRANSITION_REJECTED = "SESSION_TRANSITION_REJECTED"
    DUPLICATE_DELIVERY = "DUPLICATE_DELIVERY"
    FALLBACK_REPLY = "FALLBACK_REPLY"
    ERROR = "ERROR"


class Action(BaseModel):
    """Tagged result of executing a business operation."""
    type: ActionType
    payload: Dict[str, Any] = Field(default_factory=dict)


def find_action(actions: List[Action], action_type: ActionType) -> Action | None:
    return next((a for a in actions if a.type == action_type), None)
