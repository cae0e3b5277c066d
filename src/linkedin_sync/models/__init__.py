# ABOUTME: Models package for LinkedIn sync data structures.
# ABOUTME: Exports connection, profile detail, rate-limit budget and sync session models.

from linkedin_sync.models.connection import Connection
from linkedin_sync.models.profile import (
    Birthdate,
    Certification,
    ContactChannels,
    Education,
    EducationRow,
    Experience,
    ExperienceRow,
    PhoneNumber,
    ProfileDate,
    ProfileDetail,
    ProfileRow,
    Skill,
    SkillRow,
)
from linkedin_sync.models.rate_limit import RateLimitBudget, RateLimitCategory, RateLimitScope
from linkedin_sync.models.sync import SyncProgress, SyncSession, SyncStatus, SyncTrigger

__all__ = [
    "Birthdate",
    "Certification",
    "Connection",
    "ContactChannels",
    "Education",
    "EducationRow",
    "Experience",
    "ExperienceRow",
    "PhoneNumber",
    "ProfileDate",
    "ProfileDetail",
    "ProfileRow",
    "RateLimitBudget",
    "RateLimitCategory",
    "RateLimitScope",
    "Skill",
    "SkillRow",
    "SyncProgress",
    "SyncSession",
    "SyncStatus",
    "SyncTrigger",
]
