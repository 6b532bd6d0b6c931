# /djula/models/api.py

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime

# This file contains Pydantic models that define the structure of data for
# API requests and responses, ensuring type safety and validation.

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str

class WebhookAck(BaseModel):
    status: str
    queued: int = 0
