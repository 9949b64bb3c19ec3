# backend/model.py
from enum import IntEnum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class TaskStatus(IntEnum):
    CREATED = 0
    GENERATING = 1
    COMPLETED = 2
    FAILED = 3
    UNDER_REVIEW = 4
    REVIEWED = 5
    REVIEW_FAILED = 6


class GeneratedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    imageUrl: str
    seed: Optional[int] = None
    auditStatus: Optional[int] = None


class GenerateResponse(BaseModel):
    generateUuid: str


class StatusResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    generateUuid: str
    generateStatus: int = TaskStatus.CREATED
    percentCompleted: float = 0.0
    generateMsg: Optional[str] = None
    pointsCost: Optional[float] = None
    accountBalance: Optional[float] = None
    images: List[GeneratedImage] = Field(default_factory=list)

    @field_validator("images", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or []

    @field_validator("percentCompleted", mode="before")
    @classmethod
    def _none_as_zero(cls, v):
        return 0.0 if v is None else v


class HealthResponse(BaseModel):
    status: str
    message: str
    timestamp: str
    serverTime: str
    service: str
    version: str


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    details: Optional[str] = None
