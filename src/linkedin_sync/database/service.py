# ABOUTME: Database service for managing SQLite connections and persistence operations.
# ABOUTME: Provides connection upserts, replace-all profile detail, budgets and session state.

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy import or_, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, SQLModel, col, create_engine, func, select

from linkedin_sync.clock import as_utc, utc_now
from linkedin_sync.models import (
    Birthdate,
    Certification,
    Connection,
    ContactChannels,
    Education,
    EducationRow,
    Experience,
    ExperienceRow,
    PhoneNumber,
    ProfileDate,
    ProfileDetail,
    ProfileRow,
    RateLimitBudget,
    RateLimitCategory,
    Skill,
    SkillRow,
    SyncSession,
    SyncStatus,
)
from linkedin_sync.models.sync import SESSION_ROW_ID

# Fields overwritten when a connection is seen again. Enrichment bookkeeping is kept.
_CONNECTION_SYNC_FIELDS = (
    "public_identifier",
    "display_name",
    "first_name",
    "last_name",
    "headline",
    "title",
    "organization",
    "profile_image_url",
    "location_name",
    "connected_at",
    "source_entity_id",
)


@dataclass
class UpsertResult:
    """Outcome of a batch upsert."""

    new_count: int = 0
    updated_count: int = 0


@dataclass
class SyncStats:
    """Summary used by the orchestrator to compute session totals."""

    total_contacts: int
    last_sync_at: datetime | None


class DatabaseService:
    """Service for managing database connections and operations."""

    DEFAULT_DB_PATH = Path.home() / ".linkedin-sync" / "data.db"

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize the database service.

        Args:
            db_path: Path to the SQLite database file. Defaults to ~/.linkedin-sync/data.db
        """
        self.db_path = db_path if db_path is not None else self.DEFAULT_DB_PATH
        self._engine = create_engine(f"sqlite:///{self.db_path}", echo=False)

    def init_db(self) -> None:
        """Initialize the database by creating tables and parent directories."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        SQLModel.metadata.create_all(self._engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session as a context manager.

        Yields:
            SQLModel Session for database operations.
        """
        with Session(self._engine) as session:
            yield session

    # Connections

    def upsert_connections(self, batch: Iterable[Connection]) -> UpsertResult:
        """Insert or overwrite connections keyed by canonical URL.

        New rows are flagged as needing enrichment. Existing rows get their
        summary fields overwritten and keep their enrichment bookkeeping.
        The caller's objects are copied, never attached to the session.

        Args:
            batch: Connection records produced by the normalizer.

        Returns:
            Counts of inserted and updated rows.
        """
        result = UpsertResult()
        now = utc_now()
        with self.get_session() as session:
            seen: dict[str, Connection] = {}
            for record in batch:
                existing = seen.get(record.network_url) or session.get(
                    Connection, record.network_url
                )
                if existing is None:
                    row = Connection(**record.model_dump())
                    row.needs_enrichment = True
                    row.synced_at = now
                    session.add(row)
                    seen[row.network_url] = row
                    result.new_count += 1
                    continue

                for field in _CONNECTION_SYNC_FIELDS:
                    setattr(existing, field, getattr(record, field))
                existing.synced_at = now
                session.add(existing)
                if record.network_url not in seen:
                    result.updated_count += 1
                seen[record.network_url] = existing
            session.commit()
        return result

    def get_connections(self, limit: int = 100, offset: int = 0) -> list[Connection]:
        """Retrieve connections, most recently connected first.

        Args:
            limit: Maximum number of connections to return.
            offset: Number of connections to skip.

        Returns:
            List of Connection objects.
        """
        with self.get_session() as session:
            statement = (
                select(Connection)
                .order_by(col(Connection.connected_at).desc())
                .offset(offset)
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def get_connection_by_url(self, network_url: str) -> Connection | None:
        """Retrieve a connection by its canonical profile URL.

        Args:
            network_url: The canonical URL to look up.

        Returns:
            The Connection if found, None otherwise.
        """
        with self.get_session() as session:
            return session.get(Connection, network_url)

    def get_most_recent_connection_url(self) -> str | None:
        """Return the canonical URL of the most recently connected contact.

        This is the resume cursor for incremental syncs.

        Returns:
            The URL, or None if no dated connection is stored.
        """
        with self.get_session() as session:
            statement = (
                select(Connection.network_url)
                .where(col(Connection.connected_at).is_not(None))
                .order_by(col(Connection.connected_at).desc())
                .limit(1)
            )
            return session.exec(statement).first()

    def get_identifiers_needing_enrichment(self, limit: int = 50) -> list[str]:
        """Return public identifiers of contacts flagged for enrichment.

        Args:
            limit: Maximum number of identifiers to return.

        Returns:
            Public identifiers, most recently connected first.
        """
        with self.get_session() as session:
            statement = (
                select(Connection.public_identifier)
                .where(col(Connection.needs_enrichment).is_(True))
                .order_by(col(Connection.connected_at).desc())
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def count_connections(self) -> int:
        """Return the number of stored connections."""
        with self.get_session() as session:
            return session.exec(select(func.count()).select_from(Connection)).one()

    def get_sync_stats(self) -> SyncStats:
        """Return the contact total and the time of the last completed sync."""
        session_state = self.load_session()
        return SyncStats(
            total_contacts=self.count_connections(),
            last_sync_at=as_utc(session_state.last_sync_at) if session_state else None,
        )

    # Profile detail

    def replace_detail(self, identifier: str, detail: ProfileDetail) -> None:
        """Replace every stored detail row of one profile with a new set.

        Prior experiences, educations and skills are deleted before the new
        rows are inserted, in one transaction, so no stale row survives.

        Args:
            identifier: Public identifier of the profile.
            detail: The freshly normalized profile detail.
        """
        now = utc_now()
        with self.get_session() as session:
            for table in (ExperienceRow, EducationRow, SkillRow):
                stale = session.exec(
                    select(table).where(col(table.public_identifier) == identifier)
                ).all()
                for row in stale:
                    session.delete(row)

            profile = session.get(ProfileRow, identifier) or ProfileRow(
                public_identifier=identifier
            )
            for field in (
                "first_name",
                "last_name",
                "headline",
                "summary",
                "location_name",
                "industry_name",
                "profile_image_url",
                "background_image_url",
                "connections_count",
                "followers_count",
            ):
                setattr(profile, field, getattr(detail, field))
            profile.extras = {
                "certifications": [c.model_dump(mode="json") for c in detail.certifications],
                "languages": list(detail.languages),
                "websites": list(detail.websites),
                "contact_channels": detail.contact_channels.model_dump(mode="json"),
            }
            profile.enriched_at = now
            session.add(profile)

            for position, experience in enumerate(detail.experiences):
                session.add(_experience_to_row(identifier, position, experience))
            for position, education in enumerate(detail.educations):
                session.add(_education_to_row(identifier, position, education))
            for position, skill in enumerate(detail.skills):
                session.add(
                    SkillRow(
                        public_identifier=identifier,
                        position=position,
                        name=skill.name,
                        endorsement_count=skill.endorsement_count,
                    )
                )

            connections = session.exec(
                select(Connection).where(col(Connection.public_identifier) == identifier)
            ).all()
            for connection in connections:
                connection.needs_enrichment = False
                connection.enriched_at = now
                session.add(connection)

            session.commit()

    def get_detail(self, identifier: str) -> ProfileDetail | None:
        """Rebuild the stored profile detail of one identifier.

        Args:
            identifier: Public identifier of the profile.

        Returns:
            The ProfileDetail, or None if the profile was never enriched.
        """
        with self.get_session() as session:
            profile = session.get(ProfileRow, identifier)
            if profile is None:
                return None

            experiences = session.exec(
                select(ExperienceRow)
                .where(col(ExperienceRow.public_identifier) == identifier)
                .order_by(col(ExperienceRow.position))
            ).all()
            educations = session.exec(
                select(EducationRow)
                .where(col(EducationRow.public_identifier) == identifier)
                .order_by(col(EducationRow.position))
            ).all()
            skills = session.exec(
                select(SkillRow)
                .where(col(SkillRow.public_identifier) == identifier)
                .order_by(col(SkillRow.position))
            ).all()

            extras = profile.extras or {}
            channels = extras.get("contact_channels") or {}
            return ProfileDetail(
                public_identifier=identifier,
                first_name=profile.first_name,
                last_name=profile.last_name,
                headline=profile.headline,
                summary=profile.summary,
                location_name=profile.location_name,
                industry_name=profile.industry_name,
                profile_image_url=profile.profile_image_url,
                background_image_url=profile.background_image_url,
                connections_count=profile.connections_count,
                followers_count=profile.followers_count,
                experiences=[_row_to_experience(row) for row in experiences],
                educations=[_row_to_education(row) for row in educations],
                skills=[
                    Skill(name=row.name, endorsement_count=row.endorsement_count) for row in skills
                ],
                certifications=[
                    Certification.model_validate(c) for c in extras.get("certifications", [])
                ],
                languages=list(extras.get("languages", [])),
                websites=list(extras.get("websites", [])),
                contact_channels=ContactChannels(
                    email=channels.get("email"),
                    phone_numbers=[
                        PhoneNumber.model_validate(p) for p in channels.get("phone_numbers", [])
                    ],
                    twitter_handles=list(channels.get("twitter_handles", [])),
                    websites=list(channels.get("websites", [])),
                    birthdate=(
                        Birthdate.model_validate(channels["birthdate"])
                        if channels.get("birthdate")
                        else None
                    ),
                ),
            )

    # Rate-limit budgets

    def load_budget(self, category: RateLimitCategory) -> RateLimitBudget | None:
        """Load the persisted budget of a category.

        Args:
            category: The rate-limit category.

        Returns:
            The RateLimitBudget, or None if the category was never used.
        """
        with self.get_session() as session:
            return session.get(RateLimitBudget, category)

    def save_budget(self, budget: RateLimitBudget) -> None:
        """Persist a budget, inserting or overwriting its row.

        Args:
            budget: The budget state to store.
        """
        with self.get_session() as session:
            session.merge(budget)
            session.commit()

    # Sync session

    def load_session(self) -> SyncSession | None:
        """Load the persisted sync session, if any."""
        with self.get_session() as session:
            return session.get(SyncSession, SESSION_ROW_ID)

    def save_session(self, sync_session: SyncSession) -> None:
        """Persist the sync session, inserting or overwriting its row.

        Args:
            sync_session: The session state to store.
        """
        sync_session.updated_at = utc_now()
        with self.get_session() as session:
            session.merge(sync_session)
            session.commit()

    def claim_session(
        self, owner_id: str, now: datetime, stale_before: datetime
    ) -> SyncSession | None:
        """Move the session to syncing for owner_id in one transaction.

        The claim succeeds when the session is not syncing, is already held by
        owner_id, or its holder last heartbeated before stale_before. Any other
        process sees the row as taken until the lease goes stale.

        Args:
            owner_id: Identifier of the claiming orchestrator.
            now: Heartbeat recorded with the claim.
            stale_before: Heartbeats older than this no longer hold the lease.

        Returns:
            The claimed session, or None if another owner holds a live lease.
        """
        with self.get_session() as session:
            connection = session.connection()
            connection.execute(
                sqlite_insert(SyncSession)
                .values(
                    id=SESSION_ROW_ID,
                    status=SyncStatus.IDLE,
                    progress_current=0,
                    page_index=0,
                    total_synced=0,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=["id"])
            )
            result = connection.execute(
                update(SyncSession)
                .where(col(SyncSession.id) == SESSION_ROW_ID)
                .where(
                    or_(
                        col(SyncSession.status) != SyncStatus.SYNCING,
                        col(SyncSession.owner_id) == owner_id,
                        col(SyncSession.heartbeat_at).is_(None),
                        col(SyncSession.heartbeat_at) < stale_before,
                    )
                )
                .values(
                    status=SyncStatus.SYNCING,
                    owner_id=owner_id,
                    heartbeat_at=now,
                    updated_at=now,
                )
            )
            session.commit()
        if result.rowcount != 1:
            return None
        return self.load_session()

    def expire_stale_session(self, stale_before: datetime, message: str) -> bool:
        """Move a syncing session whose holder stopped heartbeating to error.

        Args:
            stale_before: Heartbeats older than this mark a dead holder.
            message: Error recorded on the session.

        Returns:
            True if a session was expired.
        """
        with self.get_session() as session:
            result = session.connection().execute(
                update(SyncSession)
                .where(col(SyncSession.id) == SESSION_ROW_ID)
                .where(col(SyncSession.status) == SyncStatus.SYNCING)
                .where(
                    or_(
                        col(SyncSession.heartbeat_at).is_(None),
                        col(SyncSession.heartbeat_at) < stale_before,
                    )
                )
                .values(
                    status=SyncStatus.ERROR,
                    last_error=message,
                    owner_id=None,
                    updated_at=utc_now(),
                )
            )
            session.commit()
        return result.rowcount == 1


def _date_parts(date: ProfileDate | None) -> tuple[int | None, int | None]:
    if date is None:
        return None, None
    return date.year, date.month


def _parts_to_date(year: int | None, month: int | None) -> ProfileDate | None:
    if year is None:
        return None
    return ProfileDate(year=year, month=month)


def _experience_to_row(identifier: str, position: int, experience: Experience) -> ExperienceRow:
    start_year, start_month = _date_parts(experience.start_date)
    end_year, end_month = _date_parts(experience.end_date)
    return ExperienceRow(
        public_identifier=identifier,
        position=position,
        title=experience.title,
        organization=experience.organization,
        organization_url=experience.organization_url,
        organization_logo_url=experience.organization_logo_url,
        start_year=start_year,
        start_month=start_month,
        end_year=end_year,
        end_month=end_month,
        location=experience.location,
        description=experience.description,
        is_current=experience.is_current,
    )


def _education_to_row(identifier: str, position: int, education: Education) -> EducationRow:
    start_year, start_month = _date_parts(education.start_date)
    end_year, end_month = _date_parts(education.end_date)
    return EducationRow(
        public_identifier=identifier,
        position=position,
        institution=education.institution,
        institution_url=education.institution_url,
        institution_logo_url=education.institution_logo_url,
        degree=education.degree,
        field_of_study=education.field_of_study,
        start_year=start_year,
        start_month=start_month,
        end_year=end_year,
        end_month=end_month,
        description=education.description,
        activities=education.activities,
    )


def _row_to_experience(row: ExperienceRow) -> Experience:
    return Experience(
        title=row.title,
        organization=row.organization,
        organization_url=row.organization_url,
        organization_logo_url=row.organization_logo_url,
        start_date=_parts_to_date(row.start_year, row.start_month),
        end_date=_parts_to_date(row.end_year, row.end_month),
        location=row.location,
        description=row.description,
    )


def _row_to_education(row: EducationRow) -> Education:
    return Education(
        institution=row.institution,
        institution_url=row.institution_url,
        institution_logo_url=row.institution_logo_url,
        degree=row.degree,
        field_of_study=row.field_of_study,
        start_date=_parts_to_date(row.start_year, row.start_month),
        end_date=_parts_to_date(row.end_year, row.end_month),
        description=row.description,
        activities=row.activities,
    )
