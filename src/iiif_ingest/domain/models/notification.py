from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True, slots=True)
class QueueMessage:
    payload: str
    receipt_handle: str
    message_id: str = ""


@dataclass(frozen=True, slots=True)
class Notification:
    bucket: str
    key: str
    expected_size: int
    receipt_handle: str


class S3Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class S3Object(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    size: int = 0


class S3Entity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bucket: S3Bucket
    object_: S3Object = Field(alias="object")


class S3EventRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_name: str = Field(default="", alias="eventName")
    s3: S3Entity


class S3Event(BaseModel):
    """An S3 event notification; test events carry no records at all."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    records: list[S3EventRecord] = Field(default_factory=list, alias="Records")
