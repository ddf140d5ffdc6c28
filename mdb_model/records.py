"""
Base class for typed records.

Example:
    class User(Record):
        collection_name: ClassVar[str] = "user"

        name: str = ""
        phone: str = column("", asc=True, unique=True)
        age: int = column(0, desc=True)
        password: str = column("", hidden=True, name="pswd")
"""

from datetime import datetime
from typing import ClassVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """
    Pydantic base model for documents mapped by ``Model``.

    Subclasses must be constructible without arguments: the all-defaults
    instance is the template that stored documents are rebuilt onto.
    Extra keys are kept so that lazily added columns survive a typed read.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="allow",
    )

    collection_name: ClassVar[str] = ""

    id: ObjectId | None = Field(default=None, alias="_id")


class TimestampedRecord(Record):
    """Record carrying the timestamps written when timestamping is enabled."""

    updatedAt: datetime | None = None  # noqa: N815
    createdAt: datetime | None = None  # noqa: N815
