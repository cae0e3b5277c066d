# ABOUTME: Profile detail models produced by enrichment and their persisted row tables.
# ABOUTME: Detail rows are replaced wholesale per identifier on every enrichment pass.

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel

from linkedin_sync.clock import utc_now


class ProfileDate(BaseModel):
    """Partial date as returned by LinkedIn: a year and optionally a month."""

    year: int
    month: int | None = Field(default=None, ge=1, le=12)


class Experience(BaseModel):
    """One position from a profile's experience section."""

    title: str = ""
    organization: str = ""
    organization_url: str | None = None
    organization_logo_url: str | None = None
    start_date: ProfileDate | None = None
    end_date: ProfileDate | None = None
    location: str | None = None
    description: str | None = None
    is_current: bool = True

    @model_validator(mode="after")
    def _current_iff_open_ended(self) -> "Experience":
        self.is_current = self.end_date is None
        return self


class Education(BaseModel):
    """One entry from a profile's education section."""

    institution: str
    institution_url: str | None = None
    institution_logo_url: str | None = None
    degree: str | None = None
    field_of_study: str | None = None
    start_date: ProfileDate | None = None
    end_date: ProfileDate | None = None
    description: str | None = None
    activities: str | None = None


class Skill(BaseModel):
    """A named skill and how many endorsements it received."""

    name: str
    endorsement_count: int = 0


class Certification(BaseModel):
    """A license or certification."""

    name: str
    authority: str | None = None
    license_number: str | None = None
    url: str | None = None
    start_date: ProfileDate | None = None
    end_date: ProfileDate | None = None


class PhoneNumber(BaseModel):
    number: str
    type: str = ""


class Birthdate(BaseModel):
    month: int | None = None
    day: int | None = None


class ContactChannels(BaseModel):
    """Contact information from the profileContactInfo endpoint."""

    email: str | None = None
    phone_numbers: list[PhoneNumber] = Field(default_factory=list)
    twitter_handles: list[str] = Field(default_factory=list)
    websites: list[str] = Field(default_factory=list)
    birthdate: Birthdate | None = None


class ProfileDetail(BaseModel):
    """Full profile of one connection, merged from several endpoints."""

    public_identifier: str
    first_name: str = ""
    last_name: str = ""
    headline: str | None = None
    summary: str | None = None
    location_name: str | None = None
    industry_name: str | None = None
    profile_image_url: str | None = None
    background_image_url: str | None = None
    connections_count: int | None = None
    followers_count: int | None = None

    experiences: list[Experience] = Field(default_factory=list)
    educations: list[Education] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)
    certifications: list[Certification] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    websites: list[str] = Field(default_factory=list)
    contact_channels: ContactChannels = Field(default_factory=ContactChannels)

    @property
    def full_name(self) -> str:
        """Return the full name of the profile owner."""
        return f"{self.first_name} {self.last_name}".strip()


class ProfileRow(SQLModel, table=True):
    """Scalar profile fields plus the detail sections without their own table."""

    __tablename__ = "profiles"

    public_identifier: str = SQLField(primary_key=True)
    first_name: str = ""
    last_name: str = ""
    headline: str | None = None
    summary: str | None = None
    location_name: str | None = None
    industry_name: str | None = None
    profile_image_url: str | None = None
    background_image_url: str | None = None
    connections_count: int | None = None
    followers_count: int | None = None
    extras: dict[str, Any] = SQLField(default_factory=dict, sa_column=Column(JSON))
    enriched_at: datetime = SQLField(default_factory=utc_now)


class ExperienceRow(SQLModel, table=True):
    __tablename__ = "experiences"

    id: int | None = SQLField(default=None, primary_key=True)
    public_identifier: str = SQLField(index=True)
    position: int = 0
    title: str = ""
    organization: str = ""
    organization_url: str | None = None
    organization_logo_url: str | None = None
    start_year: int | None = None
    start_month: int | None = None
    end_year: int | None = None
    end_month: int | None = None
    location: str | None = None
    description: str | None = None
    is_current: bool = False


class EducationRow(SQLModel, table=True):
    __tablename__ = "educations"

    id: int | None = SQLField(default=None, primary_key=True)
    public_identifier: str = SQLField(index=True)
    position: int = 0
    institution: str = ""
    institution_url: str | None = None
    institution_logo_url: str | None = None
    degree: str | None = None
    field_of_study: str | None = None
    start_year: int | None = None
    start_month: int | None = None
    end_year: int | None = None
    end_month: int | None = None
    description: str | None = None
    activities: str | None = None


class SkillRow(SQLModel, table=True):
    __tablename__ = "skills"

    id: int | None = SQLField(default=None, primary_key=True)
    public_identifier: str = SQLField(index=True)
    position: int = 0
    name: str
    endorsement_count: int = 0
