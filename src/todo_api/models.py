from __future__ import annotations

from datetime import date, datetime, time, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Shared type for incoming deadlines which can be a date, datetime, or formatted string
DeadlineInput = Union[date, datetime, str, None]


def format_deadline(value: Union[date, datetime]) -> str:
    """
    Format a date or datetime as an RFC 1123 UTC string, e.g.
    'Mon, 01 Jan 2001 00:00:00 GMT'. Naive values are taken as UTC and
    plain dates are promoted to midnight.
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


# PUBLIC_INTERFACE
def parse_deadline(value: str) -> Optional[datetime]:
    """
    Parse a stored deadline string into an aware UTC datetime.

    - '' (no deadline) parses to None.
    - RFC 1123 strings ('Mon, 01 Jan 2001 00:00:00 GMT') and ISO8601 strings
      are accepted; naive results are taken as UTC.
      A trailing "Z" on ISO8601 strings means UTC.

    Raises:
        ValueError if the string is in neither format.
    """
    s = value.strip()
    if not s:
        return None
    try:
        parsed = parsedate_to_datetime(s)
    except (TypeError, ValueError):
        try:
            # fromisoformat only accepts a trailing Z from Python 3.11
            iso = s[:-1] + "+00:00" if s[-1] in "zZ" else s
            parsed = datetime.fromisoformat(iso)
        except ValueError as e:
            raise ValueError(
                f"Invalid deadline '{value}'. Use an RFC 1123 or ISO8601 date/datetime string."
            ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_deadline(value: DeadlineInput, canonical: bool = False) -> str:
    """
    Validate deadline input and return the string to store.

    date/datetime values are formatted as RFC 1123 UTC strings and None becomes
    ''. Strings must parse; they are kept as given unless `canonical` is set,
    in which case they are re-formatted as RFC 1123 UTC too.
    """
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return format_deadline(value)
    if isinstance(value, str):
        parsed = parse_deadline(value)
        if canonical:
            return format_deadline(parsed) if parsed is not None else ""
        return value
    raise ValueError("Invalid type for deadline; expected date, datetime, or string.")


# PUBLIC_INTERFACE
class ToDoItem(BaseModel):
    """
    A to-do record as persisted in the item collection.

    Fields:
    - id: Unique integer identifier; 0 until the store assigns one on insert
    - description: Non-empty text
    - tags: Ordered labels, may be empty
    - deadline: RFC 1123 UTC string, '' when there is no deadline

    Two items are equal when id, description, parsed deadline and tags
    (in order) are all equal.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        json_schema_extra={
            "example": {
                "id": 7,
                "description": "Prep for Monday's class",
                "tags": ["tag1", "tag2"],
                "deadline": "Tue, 01 Oct 2019 00:00:00 GMT",
            }
        },
    )

    id: int = Field(default=0, description="Unique identifier, 0 before insertion")
    description: str = Field(..., min_length=1, description="What needs to be done")
    tags: List[str] = Field(default_factory=list, description="Ordered list of labels")
    deadline: str = Field(default="", description="RFC 1123 UTC deadline, '' for none")

    @field_validator("deadline", mode="before")
    @classmethod
    def check_deadline(cls, v: DeadlineInput) -> str:
        """
        Format date/datetime input as an RFC 1123 UTC string and check that
        string input parses. None becomes ''.
        """
        return normalize_deadline(v)

    def is_valid(self) -> bool:
        return len(self.description) > 0

    def deadline_at(self) -> Optional[datetime]:
        """Return the parsed deadline, or None when there is none."""
        return parse_deadline(self.deadline)

    def to_document(self) -> Dict[str, Any]:
        """Return the persisted document shape for this item."""
        return {
            "id": self.id,
            "description": self.description,
            "tags": list(self.tags),
            "deadline": self.deadline,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ToDoItem):
            return NotImplemented
        return (
            self.id == other.id
            and self.description == other.description
            and self.deadline_at() == other.deadline_at()
            and self.tags == other.tags
        )

