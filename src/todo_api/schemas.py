from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import DeadlineInput, ToDoItem, normalize_deadline


# PUBLIC_INTERFACE
class ToDoItemIn(BaseModel):
    """
    Schema for creating or replacing a to-do item. The id is taken from the
    URL (replace) or allocated by the store (create).
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Take Gracie to the park",
                "tags": ["family"],
                "deadline": "2020-04-07T11:45:00",
            }
        }
    )

    description: str = Field(..., min_length=1, description="What needs to be done")
    tags: List[str] = Field(default_factory=list, description="Ordered list of labels")
    deadline: str = Field(
        default="",
        description="Deadline as ISO8601 or RFC 1123 string; stored as an RFC 1123 UTC string",
    )

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: DeadlineInput) -> str:
        """
        Accept ISO8601 or RFC 1123 strings, dates or datetimes and store them
        as an RFC 1123 UTC string.
        """
        return normalize_deadline(v, canonical=True)

    def to_item(self, item_id: int = 0) -> ToDoItem:
        return ToDoItem(id=item_id, description=self.description, tags=self.tags, deadline=self.deadline)
