# ABOUTME: SQLModel for persisting LinkedIn connection summary records.
# ABOUTME: Keyed by canonical profile URL so every re-sync upserts the same row.

from datetime import datetime
from typing import Annotated

from sqlmodel import Field, SQLModel

from linkedin_sync.clock import utc_now


class Connection(SQLModel, table=True):
    """Represents one first-degree connection from the connections feed."""

    __tablename__ = "connections"

    network_url: Annotated[
        str, Field(primary_key=True, description="Canonical profile URL, unique contact key")
    ]
    public_identifier: Annotated[str, Field(index=True, description="URL-friendly identifier")]
    display_name: str
    first_name: str = ""
    last_name: str = ""
    headline: str | None = None
    title: str | None = None
    organization: str | None = None
    profile_image_url: str | None = None
    location_name: str | None = None
    connected_at: datetime | None = Field(default=None, index=True)
    source_entity_id: Annotated[str, Field(description="Profile URN the record was built from")]

    needs_enrichment: bool = Field(default=True, index=True)
    synced_at: datetime = Field(default_factory=utc_now)
    enriched_at: datetime | None = None
