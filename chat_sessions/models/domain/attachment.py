from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

FOLDER_KIND = "folder"


class RawEntry(BaseModel):
    """One entry of an uploaded batch as received from the file input."""

    name: str
    media_type: Optional[str] = None


class Attachment(BaseModel):
    name: str
    kind: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_raw(cls, entry: RawEntry) -> "Attachment":
        # Directories and files the browser cannot classify arrive without a media type.
        kind = (entry.media_type or "").strip() or FOLDER_KIND
        return cls(name=entry.name, kind=kind)

    def describe(self) -> str:
        return f"{self.name} ({self.kind})"
