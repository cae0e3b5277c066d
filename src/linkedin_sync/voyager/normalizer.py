# ABOUTME: Converts raw Voyager API payloads into Connection and ProfileDetail records.
# ABOUTME: Pure functions driven by lookup tables; malformed input degrades to None or empty lists.

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any
from urllib.parse import unquote

from linkedin_sync.models import (
    Birthdate,
    Certification,
    Connection,
    ContactChannels,
    Education,
    Experience,
    PhoneNumber,
    ProfileDate,
    ProfileDetail,
    Skill,
)

LINKEDIN_BASE_URL = "https://www.linkedin.com"

CONNECTION_TYPE = "com.linkedin.voyager.dash.relationships.Connection"
PROFILE_TYPE = "com.linkedin.voyager.dash.identity.profile.Profile"

# Tried in order; the first one found in the headline wins.
HEADLINE_SEPARATORS = (" at ", " @ ", " | ", " - ")

MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

_PROFILE_URL_PATTERN = re.compile(r"linkedin\.com/in/([^/?#]+)", re.IGNORECASE)

FieldPath = tuple[str, ...]

# Type markers accepted for each detail section of a profile view.
PROFILE_MARKERS = ("profile.Profile",)
EXPERIENCE_MARKERS = ("Position", "position", "Experience")
EDUCATION_MARKERS = ("Education", "education")
SKILL_MARKERS = ("Skill", "skill")
CERTIFICATION_MARKERS = ("Certification",)
LANGUAGE_MARKERS = ("Language",)
WEBSITE_MARKERS = ("Website",)

START_DATE_PATHS: tuple[FieldPath, ...] = (
    ("timePeriod", "startDate"),
    ("dateRange", "start"),
    ("startDate",),
)
END_DATE_PATHS: tuple[FieldPath, ...] = (
    ("timePeriod", "endDate"),
    ("dateRange", "end"),
    ("endDate",),
)

EXPERIENCE_FIELDS: dict[str, tuple[FieldPath, ...]] = {
    "title": (("title",), ("jobTitle",)),
    "organization": (("companyName",), ("company",)),
    "organization_urn": (("companyUrn",), ("*company",)),
    "logo": (("companyLogo",), ("logo",), ("miniCompany", "logo")),
    "location": (("locationName",), ("location",)),
    "description": (("description",),),
}

EDUCATION_FIELDS: dict[str, tuple[FieldPath, ...]] = {
    "institution": (("schoolName",), ("school",)),
    "institution_urn": (("schoolUrn",), ("*school",)),
    "logo": (("schoolLogo",), ("logo",), ("miniSchool", "logo")),
    "degree": (("degreeName",), ("degree",)),
    "field_of_study": (("fieldOfStudy",), ("field",)),
    "description": (("description",),),
    "activities": (("activities",),),
}

SKILL_FIELDS: dict[str, tuple[FieldPath, ...]] = {
    "name": (("name",), ("skill", "name")),
    "endorsement_count": (("endorsementCount",), ("endorsements",)),
}

PROFILE_FIELDS: dict[str, tuple[FieldPath, ...]] = {
    "first_name": (("firstName",),),
    "last_name": (("lastName",),),
    "headline": (("headline",),),
    "summary": (("summary",), ("about",)),
    "location_name": (("locationName",), ("geoLocationName",), ("location",)),
    "industry_name": (("industryName",), ("industry",)),
    "picture": (("profilePicture",), ("miniProfile", "picture"), ("picture",)),
    "background": (("backgroundImage",), ("backgroundPicture",)),
    "connections_count": (("connectionCount",), ("connections",), ("numConnections",)),
    "followers_count": (("followingInfo", "followerCount"), ("followerCount",), ("numFollowers",)),
}

# Fallback endpoints wrap their records in one of these containers.
ELEMENT_CONTAINERS: tuple[FieldPath, ...] = (("elements",), ("data", "elements"), ("included",))


def _dig(record: Any, path: FieldPath) -> Any:
    value = record
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _first(record: Any, paths: Iterable[FieldPath], kind: type | tuple[type, ...] = object) -> Any:
    """Return the first non-empty value of the expected kind found along the paths."""
    for path in paths:
        value = _dig(record, path)
        if value and isinstance(value, kind) and not isinstance(value, bool):
            return value
    return None


def _text(record: Any, paths: Iterable[FieldPath]) -> str | None:
    value = _first(record, paths, str)
    return value.strip() or None if value else None


def _count(record: Any, paths: Iterable[FieldPath]) -> int | None:
    value = _first(record, paths, (int, float))
    if value is None or not math.isfinite(value):
        return None
    return int(value)


def _has_marker(entity: Any, markers: Sequence[str]) -> bool:
    if not isinstance(entity, Mapping):
        return False
    entity_type = entity.get("$type")
    return isinstance(entity_type, str) and any(marker in entity_type for marker in markers)


def _included(payload: Any) -> list[Mapping[str, Any]]:
    included = _dig(payload, ("included",))
    if not isinstance(included, list):
        return []
    return [item for item in included if isinstance(item, Mapping)]


def _elements(payload: Any) -> list[Mapping[str, Any]]:
    elements = _first(payload, ELEMENT_CONTAINERS, list) or []
    return [item for item in elements if isinstance(item, Mapping)]


def urn_id(urn: str) -> str:
    """Return the last segment of a URN such as urn:li:fsd_company:1234."""
    return urn.rsplit(":", 1)[-1]


def company_url_from_urn(urn: str | None) -> str | None:
    if not urn:
        return None
    return f"{LINKEDIN_BASE_URL}/company/{urn_id(urn)}"


def school_url_from_urn(urn: str | None) -> str | None:
    if not urn:
        return None
    return f"{LINKEDIN_BASE_URL}/school/{urn_id(urn)}"


def public_identifier_from_url(url: str) -> str | None:
    """Extract the public identifier from a linkedin.com/in/ profile URL.

    Args:
        url: Any LinkedIn profile URL, with or without scheme, query or trailing slash.

    Returns:
        The identifier, or None if the URL is not a profile URL.
    """
    match = _PROFILE_URL_PATTERN.search(url)
    if not match:
        return None
    return unquote(match.group(1)).strip() or None


def canonical_profile_url(url_or_identifier: str) -> str:
    """Return the canonical profile URL used as the unique contact key.

    Accepts either a profile URL or a bare public identifier. The result has
    no query string and no trailing slash.
    """
    identifier = public_identifier_from_url(url_or_identifier) or url_or_identifier.strip("/ ")
    return f"{LINKEDIN_BASE_URL}/in/{identifier}"


def split_headline(headline: str | None) -> tuple[str | None, str | None]:
    """Split a headline into title and organization.

    Splits on the first separator of HEADLINE_SEPARATORS that occurs after
    the start of the headline. Without a separator the whole headline is the
    title.

    Args:
        headline: The profile headline, e.g. "Engineer at Acme".

    Returns:
        Tuple of (title, organization).
    """
    if not headline or not headline.strip():
        return None, None

    for separator in HEADLINE_SEPARATORS:
        index = headline.find(separator)
        if index > 0:
            title = headline[:index].strip()
            organization = headline[index + len(separator) :].strip()
            return title or None, organization or None

    return headline.strip(), None


def normalize_date(raw: Any) -> ProfileDate | None:
    """Normalize a Voyager date object to a ProfileDate.

    A date without a year is treated as absent. An out-of-range month is dropped.
    """
    if not isinstance(raw, Mapping):
        return None
    year = raw.get("year")
    if not isinstance(year, int) or isinstance(year, bool) or year <= 0:
        return None
    month = raw.get("month")
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        month = None
    return ProfileDate(year=year, month=month)


def format_profile_date(date: ProfileDate | None) -> str | None:
    """Render a date as "Jan 2020", or "2020" when the month is unknown."""
    if date is None:
        return None
    if date.month:
        return f"{MONTH_ABBREVIATIONS[date.month - 1]} {date.year}"
    return str(date.year)


def epoch_millis_to_datetime(value: Any) -> datetime | None:
    if not isinstance(value, int | float) or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(value / 1000, UTC)
    except (OverflowError, OSError, ValueError):
        return None


def _vector_image(image: Any) -> tuple[str, list[Mapping[str, Any]]] | None:
    if not isinstance(image, Mapping):
        return None
    root_url = image.get("rootUrl")
    artifacts = image.get("artifacts")
    if not isinstance(root_url, str) or not root_url or not isinstance(artifacts, list):
        return None
    artifacts = [a for a in artifacts if isinstance(a, Mapping)]
    if not artifacts:
        return None
    return root_url, artifacts


def extract_profile_image_url(picture: Any) -> str | None:
    """Return the URL of the widest variant of a profile picture, or None."""
    vector = _vector_image(
        _first(
            picture,
            (("displayImageReference", "vectorImage"), ("displayImage", "vectorImage")),
            Mapping,
        )
    )
    if vector is None:
        return None
    root_url, artifacts = vector
    widest = max(artifacts, key=lambda artifact: _count(artifact, (("width",),)) or 0)
    return f"{root_url}{widest.get('fileIdentifyingUrlPathSegment') or ''}"


def extract_logo_url(logo: Any) -> str | None:
    """Return the URL of the last variant of a company or school logo, or None."""
    vector = _vector_image(_first(logo, (("vectorImage",), ("image",)), Mapping))
    if vector is None:
        return None
    root_url, artifacts = vector
    return f"{root_url}{artifacts[-1].get('fileIdentifyingUrlPathSegment') or ''}"


# Connections feed


def page_element_count(page: Any) -> int:
    """Return how many elements the page reported, used to detect the end of the list."""
    elements = _first(page, (("data", "*elements"), ("data", "elements")), list)
    return len(elements) if elements else 0


def page_total(page: Any) -> int | None:
    """Return the total number of connections from paging metadata, if known."""
    return _count(page, (("data", "paging", "total"),))


def to_connections(page: Any) -> list[Connection]:
    """Join relationship records to profile records and build Connections.

    Relationships without a matching profile, and profiles without a public
    identifier, are dropped. The API's order is kept.

    Args:
        page: Raw JSON body of one connections page.

    Returns:
        Connection records, most recently connected first as delivered.
    """
    included = _included(page)
    profiles = {
        entity["entityUrn"]: entity
        for entity in included
        if entity.get("$type") == PROFILE_TYPE and isinstance(entity.get("entityUrn"), str)
    }

    connections: list[Connection] = []
    seen: set[str] = set()
    for relationship in included:
        if relationship.get("$type") != CONNECTION_TYPE:
            continue
        member = relationship.get("connectedMember")
        profile = profiles.get(member) if isinstance(member, str) else None
        if profile is None:
            continue
        identifier = _text(profile, (("publicIdentifier",),))
        if identifier is None:
            continue

        network_url = canonical_profile_url(identifier)
        if network_url in seen:
            continue
        seen.add(network_url)

        first_name = _text(profile, (("firstName",),)) or ""
        last_name = _text(profile, (("lastName",),)) or ""
        headline = _text(profile, (("headline",),))
        title, organization = split_headline(headline)

        connections.append(
            Connection(
                network_url=network_url,
                public_identifier=identifier,
                display_name=f"{first_name} {last_name}".strip(),
                first_name=first_name,
                last_name=last_name,
                headline=headline,
                title=title,
                organization=organization,
                profile_image_url=extract_profile_image_url(profile.get("profilePicture")),
                location_name=_text(profile, (("geoLocationName",), ("locationName",))),
                connected_at=epoch_millis_to_datetime(relationship.get("createdAt")),
                source_entity_id=profile.get("entityUrn") or "",
            )
        )
    return connections


# Profile detail


def _to_experience(record: Mapping[str, Any]) -> Experience | None:
    title = _text(record, EXPERIENCE_FIELDS["title"]) or ""
    organization = _text(record, EXPERIENCE_FIELDS["organization"]) or ""
    if not title and not organization:
        return None
    return Experience(
        title=title,
        organization=organization,
        organization_url=company_url_from_urn(_text(record, EXPERIENCE_FIELDS["organization_urn"])),
        organization_logo_url=extract_logo_url(_first(record, EXPERIENCE_FIELDS["logo"], Mapping)),
        start_date=normalize_date(_first(record, START_DATE_PATHS, Mapping)),
        end_date=normalize_date(_first(record, END_DATE_PATHS, Mapping)),
        location=_text(record, EXPERIENCE_FIELDS["location"]),
        description=_text(record, EXPERIENCE_FIELDS["description"]),
    )


def _to_education(record: Mapping[str, Any]) -> Education | None:
    institution = _text(record, EDUCATION_FIELDS["institution"])
    if not institution:
        return None
    return Education(
        institution=institution,
        institution_url=school_url_from_urn(_text(record, EDUCATION_FIELDS["institution_urn"])),
        institution_logo_url=extract_logo_url(_first(record, EDUCATION_FIELDS["logo"], Mapping)),
        degree=_text(record, EDUCATION_FIELDS["degree"]),
        field_of_study=_text(record, EDUCATION_FIELDS["field_of_study"]),
        start_date=normalize_date(_first(record, START_DATE_PATHS, Mapping)),
        end_date=normalize_date(_first(record, END_DATE_PATHS, Mapping)),
        description=_text(record, EDUCATION_FIELDS["description"]),
        activities=_text(record, EDUCATION_FIELDS["activities"]),
    )


def _to_skill(record: Mapping[str, Any]) -> Skill | None:
    name = _text(record, SKILL_FIELDS["name"])
    if not name:
        return None
    endorsements = _count(record, SKILL_FIELDS["endorsement_count"]) or 0
    return Skill(name=name, endorsement_count=endorsements)


def _to_certification(record: Mapping[str, Any]) -> Certification | None:
    name = _text(record, (("name",),))
    if not name:
        return None
    return Certification(
        name=name,
        authority=_text(record, (("authority",),)),
        license_number=_text(record, (("licenseNumber",),)),
        url=_text(record, (("url",),)),
        start_date=normalize_date(_dig(record, ("timePeriod", "startDate"))),
        end_date=normalize_date(_dig(record, ("timePeriod", "endDate"))),
    )


def _collect(records: Iterable[Mapping[str, Any]], convert: Any) -> list[Any]:
    return [item for item in map(convert, records) if item is not None]


def parse_positions(payload: Any) -> list[Experience]:
    """Parse the dedicated positions endpoint."""
    records = [
        item
        for item in _elements(payload)
        if _has_marker(item, ("Position",)) or item.get("title") or item.get("companyName")
    ]
    return _collect(records, _to_experience)


def parse_educations(payload: Any) -> list[Education]:
    """Parse the dedicated educations endpoint."""
    records = [
        item
        for item in _elements(payload)
        if _has_marker(item, ("Education",)) or item.get("schoolName")
    ]
    return _collect(records, _to_education)


def parse_skills(payload: Any) -> list[Skill]:
    """Parse the dedicated skills endpoint."""
    return _collect(_elements(payload), _to_skill)


def parse_contact_info(payload: Any) -> ContactChannels | None:
    """Parse the profileContactInfo endpoint. Returns None for a non-object body."""
    if not isinstance(payload, Mapping):
        return None

    phones = payload.get("phoneNumbers")
    twitter = payload.get("twitterHandles")
    websites = payload.get("websites")
    birthdate = payload.get("birthdate")

    return ContactChannels(
        email=_text(payload, (("emailAddress",),)),
        phone_numbers=[
            PhoneNumber(number=str(p.get("number") or ""), type=str(p.get("type") or ""))
            for p in phones or []
            if isinstance(p, Mapping) and p.get("number")
        ]
        if isinstance(phones, list)
        else [],
        twitter_handles=[
            handle
            for handle in (t.get("name") if isinstance(t, Mapping) else t for t in twitter)
            if isinstance(handle, str) and handle
        ]
        if isinstance(twitter, list)
        else [],
        websites=[
            url
            for url in (w.get("url") if isinstance(w, Mapping) else w for w in websites)
            if isinstance(url, str) and url
        ]
        if isinstance(websites, list)
        else [],
        birthdate=Birthdate(
            month=_count(birthdate, (("month",),)), day=_count(birthdate, (("day",),))
        )
        if isinstance(birthdate, Mapping)
        else None,
    )


def _find_profile_entity(
    included: list[Mapping[str, Any]], public_identifier: str
) -> Mapping[str, Any] | None:
    for entity in included:
        if entity.get("publicIdentifier") == public_identifier:
            return entity
    for entity in included:
        if _has_marker(entity, PROFILE_MARKERS):
            return entity
    return None


def parse_profile_view(payload: Any, public_identifier: str) -> ProfileDetail | None:
    """Parse the primary profileView payload on its own.

    Returns:
        The ProfileDetail, or None when the payload holds no profile entity.
    """
    included = _included(payload)
    profile = _find_profile_entity(included, public_identifier)
    if profile is None:
        return None

    def section(markers: Sequence[str]) -> list[Mapping[str, Any]]:
        return [entity for entity in included if _has_marker(entity, markers)]

    return ProfileDetail(
        public_identifier=public_identifier,
        first_name=_text(profile, PROFILE_FIELDS["first_name"]) or "",
        last_name=_text(profile, PROFILE_FIELDS["last_name"]) or "",
        headline=_text(profile, PROFILE_FIELDS["headline"]),
        summary=_text(profile, PROFILE_FIELDS["summary"]),
        location_name=_text(profile, PROFILE_FIELDS["location_name"]),
        industry_name=_text(profile, PROFILE_FIELDS["industry_name"]),
        profile_image_url=extract_profile_image_url(
            _first(profile, PROFILE_FIELDS["picture"], Mapping)
        ),
        background_image_url=extract_profile_image_url(
            _first(profile, PROFILE_FIELDS["background"], Mapping)
        ),
        connections_count=_count(profile, PROFILE_FIELDS["connections_count"]),
        followers_count=_count(profile, PROFILE_FIELDS["followers_count"]),
        experiences=_collect(section(EXPERIENCE_MARKERS), _to_experience),
        educations=_collect(section(EDUCATION_MARKERS), _to_education),
        skills=_collect(section(SKILL_MARKERS), _to_skill),
        certifications=_collect(section(CERTIFICATION_MARKERS), _to_certification),
        languages=[
            name for name in (_text(e, (("name",),)) for e in section(LANGUAGE_MARKERS)) if name
        ],
        websites=[
            url for url in (_text(e, (("url",),)) for e in section(WEBSITE_MARKERS)) if url
        ],
    )


def with_fallbacks(
    detail: ProfileDetail, positions: Any = None, educations: Any = None
) -> ProfileDetail:
    """Substitute experiences or educations from the dedicated endpoints.

    A section is only replaced when the primary view yielded none and the
    fallback payload yields at least one record. Replacement is wholesale.
    """
    update: dict[str, Any] = {}
    if not detail.experiences and positions is not None:
        fallback_experiences = parse_positions(positions)
        if fallback_experiences:
            update["experiences"] = fallback_experiences
    if not detail.educations and educations is not None:
        fallback_educations = parse_educations(educations)
        if fallback_educations:
            update["educations"] = fallback_educations
    return detail.model_copy(update=update) if update else detail


def to_profile_detail(
    public_identifier: str,
    profile_view: Any,
    contact_info: Any = None,
    skills: Any = None,
    positions: Any = None,
    educations: Any = None,
) -> ProfileDetail | None:
    """Merge independently fetched payloads into one ProfileDetail.

    Skills from the skills endpoint replace those of the primary view when
    non-empty. Contact info is overlaid onto the primary view. Fallback
    positions and educations are substituted only for empty sections.

    Args:
        public_identifier: Identifier the payloads were fetched for.
        profile_view: Body of the profileView endpoint.
        contact_info: Body of the profileContactInfo endpoint, or None.
        skills: Body of the skills endpoint, or None.
        positions: Body of the positions endpoint, or None.
        educations: Body of the educations endpoint, or None.

    Returns:
        The merged ProfileDetail, or None when the primary view has no profile.
    """
    detail = parse_profile_view(profile_view, public_identifier)
    if detail is None:
        return None

    detail = with_fallbacks(detail, positions, educations)
    update: dict[str, Any] = {}

    channels = parse_contact_info(contact_info)
    if channels is not None:
        update["contact_channels"] = channels
        if channels.websites:
            update["websites"] = list(channels.websites)

    skill_list = parse_skills(skills) if skills is not None else []
    if skill_list:
        update["skills"] = skill_list

    return detail.model_copy(update=update) if update else detail


def current_position(detail: ProfileDetail) -> Experience | None:
    """Return the first experience without an end date."""
    return next((experience for experience in detail.experiences if experience.is_current), None)


def connection_from_detail(detail: ProfileDetail) -> Connection:
    """Build a summary Connection for a profile added directly by identifier."""
    title, organization = split_headline(detail.headline)
    current = current_position(detail)
    if current is not None:
        title = current.title or title
        organization = current.organization or organization
    return Connection(
        network_url=canonical_profile_url(detail.public_identifier),
        public_identifier=detail.public_identifier,
        display_name=detail.full_name,
        first_name=detail.first_name,
        last_name=detail.last_name,
        headline=detail.headline,
        title=title,
        organization=organization,
        profile_image_url=detail.profile_image_url,
        location_name=detail.location_name,
        source_entity_id="",
    )
