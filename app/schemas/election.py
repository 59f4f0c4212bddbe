"""Election schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ElectionCreate(BaseModel):
    """Request body for creating an election."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    start_time: datetime
    end_time: datetime
    is_active: bool = False


class ElectionUpdate(BaseModel):
    """Partial election update; omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    start_time: datetime | None = None
    end_time: datetime | None = None
    is_active: bool | None = None


class ElectionActivation(BaseModel):
    """Request body for the organizer kill switch."""

    is_active: bool


class ElectionResponse(BaseModel):
    """Election representation with its lifecycle state."""

    id: str
    title: str
    description: str = ""
    start_time: datetime
    end_time: datetime
    is_active: bool
    state: str
    created_at: datetime | None = None
