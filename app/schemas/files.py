"""Schemas for Drive file listings."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DriveFile(BaseModel):
    """Identifier and display name of a Drive file."""

    id: str = Field(..., description="Drive file identifier.")
    name: str = Field(..., description="File name as shown in Drive.")


__all__ = ["DriveFile"]
