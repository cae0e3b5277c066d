# ABOUTME: Database statistics functionality for the status command.
# ABOUTME: Provides aggregated stats about stored connections and enrichment coverage.

from typing import Any

from sqlmodel import col, func, select

from linkedin_sync.database.service import DatabaseService
from linkedin_sync.models import Connection, ProfileRow


def get_database_stats(db_service: DatabaseService) -> dict[str, Any]:
    """Get statistics about stored connections in the database.

    Args:
        db_service: The DatabaseService instance to query.

    Returns:
        Dictionary containing:
            - total_connections: Total number of stored connections
            - enriched_profiles: Number of profiles with stored detail
            - pending_enrichment: Connections still flagged for enrichment
            - unique_organizations: Count of distinct current organizations
            - unique_locations: Count of distinct locations
    """
    with db_service.get_session() as session:
        total_connections = session.exec(select(func.count()).select_from(Connection)).one()

        enriched_profiles = session.exec(select(func.count()).select_from(ProfileRow)).one()

        pending_stmt = (
            select(func.count())
            .select_from(Connection)
            .where(col(Connection.needs_enrichment).is_(True))
        )
        pending_enrichment = session.exec(pending_stmt).one()

        # Empty strings mean "unknown" for summary fields
        organizations_stmt = select(func.count(func.distinct(Connection.organization))).where(
            col(Connection.organization).is_not(None), col(Connection.organization) != ""
        )
        unique_organizations = session.exec(organizations_stmt).one()

        locations_stmt = select(func.count(func.distinct(Connection.location_name))).where(
            col(Connection.location_name).is_not(None), col(Connection.location_name) != ""
        )
        unique_locations = session.exec(locations_stmt).one()

    return {
        "total_connections": total_connections,
        "enriched_profiles": enriched_profiles,
        "pending_enrichment": pending_enrichment,
        "unique_organizations": unique_organizations,
        "unique_locations": unique_locations,
    }
