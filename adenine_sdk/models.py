"""
Data models for the Adenine SDK.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field


class ReplyInfo(BaseModel):
    """Contents of the ``jwt_info`` claim of a signed Node RPC reply"""
    result: Any = Field(...)
    network: Optional[str] = None
    chain: Optional[str] = None
    method: Optional[str] = None

    class Config:
        extra = "allow"
