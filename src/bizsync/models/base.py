"""Shared columns for every replicated record."""
from sqlmodel import Field, SQLModel

from bizsync.db.defaults import new_id, now_iso


class RecordBase(SQLModel):
    """id is issued once and shared by the local and the remote copy."""

    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso, index=True)
