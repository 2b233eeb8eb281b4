from datetime import datetime

from pydantic import BaseModel, Field


class IDResponse(BaseModel):
    """Response model for a single issued ID.

    Args:
        id (int): The Snowflake ID.
        id_str (str): The same ID as a string, for clients without 64-bit integers.
    """

    id: int = Field(..., description="Snowflake ID", examples=[1234567890123456789])
    id_str: str = Field(
        ...,
        description="Snowflake ID as a string, safe for JavaScript clients",
        examples=["1234567890123456789"],
    )


class IDBatchResponse(BaseModel):
    """Response model for a batch of issued IDs, in issue order."""

    ids: list[int] = Field(..., description="Snowflake IDs in ascending order")


class DecodedID(BaseModel):
    """Response model for the fields unpacked from a Snowflake ID.

    Args:
        id (int): The decoded ID.
        timestamp (int): Milliseconds since the generator epoch.
        datacenter_id (int): Datacenter part of the node identity.
        worker_id (int): Worker part of the node identity.
        sequence (int): Per-millisecond sequence number.
        created_at (datetime): UTC instant the ID was issued at.
    """

    id: int
    timestamp: int = Field(..., description="Milliseconds since the epoch")
    datacenter_id: int = Field(..., ge=0, le=31)
    worker_id: int = Field(..., ge=0, le=31)
    sequence: int = Field(..., ge=0, le=4095)
    created_at: datetime


class HealthResponse(BaseModel):
    """Response model for the health endpoint.

    Args:
        status (str): ``"ok"``, or ``"halted"`` after a fatal clock rollback.
        datacenter_id (int): Datacenter part of the node identity.
        worker_id (int): Worker part of the node identity.
        halted (bool): Whether the generator stopped issuing IDs.
    """

    status: str
    datacenter_id: int
    worker_id: int
    halted: bool
