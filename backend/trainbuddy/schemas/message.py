"""Pydantic schemas for group chat."""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class ChatMessage(BaseModel):
    message_id: str
    group_id: str
    user_id: str
    user_name: str
    message: str
    timestamp: datetime


class MessageCreate(BaseModel):
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value
