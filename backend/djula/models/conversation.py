# /djula/models/conversation.py

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator


class MessageRole(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"


class IntentType(str, Enum):
    CATALOG_BROWSE = "CATALOG_BROWSE"
    PRODUCT_QUERY = "PRODUCT_QUERY"
    ORDER_PLACEMENT = "ORDER_PLACEMENT"
    ORDER_STATUS = "ORDER_STATUS"
    PAYMENT = "PAYMENT"
    CUSTOMER_SUPPORT = "CUSTOMER_SUPPORT"
    UNKNOWN = "UNKNOWN"


class SessionStatus(str, Enum):
    """Explicit shopping-session status, see djula.workflows.session_machine."""
    NEW = "new"
    ACTIVE = "active"
    ORDER_IN_PROGRESS = "order_in_progress"
    PAYMENT_PENDING = "payment_pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


class MessageMetadata(BaseModel):
    intent: Optional[IntentType] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    products: List[str] = Field(default_factory=list, description="Referenced product IDs")
    error: bool = False


class Message(BaseModel):
    """One turn of the conversation history."""
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)


class IntentContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    previous_intent: Optional[IntentType] = None
    order_in_progress: bool = False
    product_discussion: bool = False

    @field_validator("previous_intent", mode="before")
    @classmethod
    def unknown_previous_intent_is_none(cls, v):
        """Models echo an empty string (or a stale label) when there was no previous intent."""
        if isinstance(v, str) and v in IntentType._value2member_map_:
            return v
        return None

    @field_validator("order_in_progress", "product_discussion", mode="before")
    @classmethod
    def null_flag_is_false(cls, v):
        return False if v is None else v


class Intent(BaseModel):
    """Structured interpretation of one inbound message."""
    model_config = ConfigDict(extra="ignore")

    type: IntentType
    confidence: float = Field(ge=0.0, le=1.0)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    context: IntentContext = Field(default_factory=IntentContext)

    @field_validator("parameters", "context", mode="before")
    @classmethod
    def null_is_empty(cls, v):
        return {} if v is None else v


class ActiveOrder(BaseModel):
    id: str
    status: str
    items: List[Dict[str, Any]] = Field(default_factory=list)


def default_session_data() -> Dict[str, Any]:
    return {
        "last_interaction": datetime.utcnow(),
        "last_intent": "",
        "order_in_progress": False,
        "payment_pending": False,
    }


class SessionState(BaseModel):
    """Per-customer mutable session state."""
    active_order: Optional[ActiveOrder] = None
    session_data: Dict[str, Any] = Field(default_factory=default_session_data)
    status: SessionStatus = SessionStatus.NEW


class SessionStateUpdate(BaseModel):
    active_order: Optional[ActiveOrder] = None
    session_data: Optional[Dict[str, Any]] = None
    status: Optional[SessionStatus] = None


class ConversationContext(BaseModel):
    customer_id: str
    history: List[Message] = Field(default_factory=list)
    last_intent: Optional[Intent] = None
    current_order: Optional[ActiveOrder] = None


class ContextUpdate(BaseModel):
    last_intent: Optional[Intent] = None
    session_data: Optional[Dict[str, Any]] = None


class InboundMessage(BaseModel):
    """A normalized inbound WhatsApp message."""
    message_id: str
    customer_id: str
    message_type: str
    content: str
    profile_name: Optional[str] = None
    interactive_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class OutboundMessage(BaseModel):
    """
    A channel-formatted outbound message: `type` is the WhatsApp message type
    and `body` the type payload (e.g. {"body": "..."} for text).
    """
    type: str
    body: Dict[str, Any]

    def to_payload(self, to_phone: str) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to_phone,
            "type": self.type,
            self.type: self.body,
        }


class ConversationStats(BaseModel):
    total_messages: int = 0
    first_interaction: Optional[datetime] = None
    last_interaction: Optional[datetime] = None
    common_topics: List[str] = Field(default_factory=list)
