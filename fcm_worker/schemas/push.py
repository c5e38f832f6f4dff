"""Pydantic schemas for queued push messages and batch results."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TopicPush(BaseModel):
    """Push addressed to every device subscribed to a topic."""

    type: Literal["topic"]
    title: str = Field(..., description="Notification title.")
    body: str = Field(..., description="Notification body text.")
    topic: str = Field(..., min_length=1, description="FCM topic name (e.g. 'all').")


class TokensPush(BaseModel):
    """Push addressed to an explicit list of device registration tokens."""

    type: Literal["tokens"]
    title: str = Field(..., description="Notification title.")
    body: str = Field(..., description="Notification body text.")
    tokens: list[str] = Field(
        ...,
        min_length=1,
        description="Device registration tokens receiving the push.",
    )


PushMessage = Annotated[Union[TopicPush, TokensPush], Field(discriminator="type")]

push_message_adapter: TypeAdapter[TopicPush | TokensPush] = TypeAdapter(PushMessage)


class RecordAttributes(BaseModel):
    """Delivery attributes set by the queue."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    approximate_receive_count: int = Field(
        1,
        alias="ApproximateReceiveCount",
        ge=1,
        description="How many times the queue has delivered this record.",
    )


class QueueRecord(BaseModel):
    """One queue record carrying a JSON-encoded push message."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message_id: str | None = Field(default=None, alias="messageId")
    body: str = Field(..., description="Raw record body (JSON push message).")
    attributes: RecordAttributes = Field(default_factory=RecordAttributes)


class QueueEvent(BaseModel):
    """Batch of queue records delivered in one invocation."""

    model_config = ConfigDict(populate_by_name=True)

    records: list[QueueRecord] = Field(default_factory=list, alias="Records")


class BatchResult(BaseModel):
    """Summary of a processed batch."""

    processed: int = Field(0, ge=0, description="Records dispatched successfully.")
    stopped_reason: Literal["max_receive_count", "invalid_message"] | None = Field(
        default=None,
        description="Why processing stopped before the end of the batch, if it did.",
    )
