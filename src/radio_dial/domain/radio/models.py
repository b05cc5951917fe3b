"""
Radio domain models.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Radio:
    """A station listed in the directory.

    Rows come from the hosted backend; only the fields the player and the
    directory views need are kept.
    """

    id: str
    name: str
    stream_url: str
    frequency: str = ""
    logo_url: Optional[str] = None
    cover_url: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Radio":
        """Build a Radio from a backend row, ignoring unknown columns.

        Raises:
            KeyError: If id, name or stream_url is missing
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in row.items() if key in known}
        values["id"] = str(row["id"])
        values["name"] = row["name"]
        values["stream_url"] = row["stream_url"]
        if values.get("frequency") is None:
            values["frequency"] = ""
        return cls(**values)
