# ABOUTME: Tests for converting raw Voyager payloads into Connection and ProfileDetail records.
# ABOUTME: Covers the relationship/profile join, headline splitting, dates, images and merging.

from datetime import UTC, datetime
from typing import Any

import pytest

from fakes import connections_page, profile_view
from linkedin_sync.models import Experience, ProfileDate, ProfileDetail
from linkedin_sync.voyager import normalizer


def _vector(root: str, widths: list[int]) -> dict[str, Any]:
    return {
        "rootUrl": root,
        "artifacts": [
            {"width": width, "fileIdentifyingUrlPathSegment": f"{width}.jpg"} for width in widths
        ],
    }


class TestToConnections:
    """Tests for joining relationship records to profile records."""

    def test_builds_connections_in_api_order(self) -> None:
        connections = normalizer.to_connections(connections_page(["ada", "bob", "cy"]))

        assert [c.public_identifier for c in connections] == ["ada", "bob", "cy"]
        first = connections[0]
        assert first.network_url == "https://www.linkedin.com/in/ada"
        assert first.display_name == "Ada Tester"
        assert first.title == "Engineer"
        assert first.organization == "Org 0"
        assert first.source_entity_id == "urn:li:fsd_profile:ada"
        assert first.connected_at == datetime.fromtimestamp(1_700_000_000, UTC)

    def test_drops_relationships_without_profile(self) -> None:
        """Only K of N relationships with a matching profile become connections."""
        page = connections_page(["ada", "bob", "cy"])
        page["included"] = [
            e
            for e in page["included"]
            if e.get("entityUrn") != "urn:li:fsd_profile:bob"
        ]

        connections = normalizer.to_connections(page)
        assert [c.public_identifier for c in connections] == ["ada", "cy"]

    def test_drops_profiles_without_identifier(self) -> None:
        page = connections_page(["ada", "bob"])
        for entity in page["included"]:
            if entity.get("entityUrn") == "urn:li:fsd_profile:ada":
                del entity["publicIdentifier"]

        assert [c.public_identifier for c in normalizer.to_connections(page)] == ["bob"]

    def test_deduplicates_by_url(self) -> None:
        page = connections_page(["ada"])
        page["included"].append(dict(page["included"][1], entityUrn="urn:li:fsd_connection:x"))

        assert len(normalizer.to_connections(page)) == 1

    def test_profile_picture_uses_widest_artifact(self) -> None:
        page = connections_page(["ada"])
        page["included"][0]["profilePicture"] = {
            "displayImageReference": {
                "vectorImage": _vector("https://media.licdn.com/", [100, 800, 200])
            }
        }

        connection = normalizer.to_connections(page)[0]
        assert connection.profile_image_url == "https://media.licdn.com/800.jpg"

    @pytest.mark.parametrize("payload", [None, [], "text", {"included": "x"}, {"data": None}])
    def test_malformed_page_yields_nothing(self, payload: Any) -> None:
        assert normalizer.to_connections(payload) == []

    def test_page_metadata(self) -> None:
        page = connections_page(["a", "b", "c"], total=250)

        assert normalizer.page_element_count(page) == 3
        assert normalizer.page_total(page) == 250
        assert normalizer.page_total(connections_page(["a"])) is None
        assert normalizer.page_element_count({}) == 0

    @pytest.mark.parametrize("total", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_total_is_missing(self, total: float) -> None:
        page = connections_page(["a"], total=1)
        page["data"]["paging"]["total"] = total

        assert normalizer.page_total(page) is None
        assert len(normalizer.to_connections(page)) == 1


class TestSplitHeadline:
    """Tests for splitting a headline into title and organization."""

    @pytest.mark.parametrize(
        ("headline", "expected"),
        [
            ("Software Engineer at Acme Corp", ("Software Engineer", "Acme Corp")),
            ("CTO @ Beta", ("CTO", "Beta")),
            ("Founder | Gamma - Delta", ("Founder", "Gamma - Delta")),
            ("Designer - Studio", ("Designer", "Studio")),
            ("Head of Growth at Acme | Speaker", ("Head of Growth", "Acme | Speaker")),
            ("Independent Consultant", ("Independent Consultant", None)),
            (" - Leading separator", ("- Leading separator", None)),
            ("", (None, None)),
            (None, (None, None)),
        ],
    )
    def test_split(self, headline: str | None, expected: tuple[str | None, str | None]) -> None:
        assert normalizer.split_headline(headline) == expected


class TestUrls:
    """Tests for profile URL handling."""

    @pytest.mark.parametrize(
        "value",
        [
            "ada-lovelace",
            "https://www.linkedin.com/in/ada-lovelace/",
            "https://linkedin.com/in/ada-lovelace?trk=abc",
            "www.linkedin.com/in/ada-lovelace#about",
        ],
    )
    def test_canonical_profile_url(self, value: str) -> None:
        assert normalizer.canonical_profile_url(value) == (
            "https://www.linkedin.com/in/ada-lovelace"
        )

    def test_public_identifier_is_unquoted(self) -> None:
        url = "https://www.linkedin.com/in/j%C3%BCrgen/"
        assert normalizer.public_identifier_from_url(url) == "jürgen"

    def test_non_profile_url(self) -> None:
        assert normalizer.public_identifier_from_url("https://www.linkedin.com/feed/") is None

    def test_company_and_school_urls(self) -> None:
        assert normalizer.company_url_from_urn("urn:li:fs_miniCompany:42") == (
            "https://www.linkedin.com/company/42"
        )
        assert normalizer.school_url_from_urn("urn:li:fs_miniSchool:7") == (
            "https://www.linkedin.com/school/7"
        )
        assert normalizer.company_url_from_urn(None) is None


class TestDates:
    """Tests for date normalization."""

    def test_year_and_month(self) -> None:
        assert normalizer.normalize_date({"year": 2020, "month": 5}) == ProfileDate(
            year=2020, month=5
        )

    def test_year_only(self) -> None:
        assert normalizer.normalize_date({"year": 2020}) == ProfileDate(year=2020)

    @pytest.mark.parametrize("raw", [{"month": 5}, {"year": "2020"}, {"year": 0}, None, "2020"])
    def test_missing_year_is_absent(self, raw: Any) -> None:
        assert normalizer.normalize_date(raw) is None

    def test_invalid_month_dropped(self) -> None:
        assert normalizer.normalize_date({"year": 2020, "month": 13}) == ProfileDate(year=2020)

    def test_format(self) -> None:
        assert normalizer.format_profile_date(ProfileDate(year=2020, month=1)) == "Jan 2020"
        assert normalizer.format_profile_date(ProfileDate(year=2020)) == "2020"
        assert normalizer.format_profile_date(None) is None

    def test_epoch_millis(self) -> None:
        assert normalizer.epoch_millis_to_datetime(0) == datetime(1970, 1, 1, tzinfo=UTC)
        assert normalizer.epoch_millis_to_datetime("0") is None
        assert normalizer.epoch_millis_to_datetime(True) is None


class TestImages:
    """Tests for vector image URL extraction."""

    def test_logo_uses_last_artifact(self) -> None:
        logo = {"vectorImage": _vector("https://media.licdn.com/", [400, 100, 200])}
        assert normalizer.extract_logo_url(logo) == "https://media.licdn.com/200.jpg"

    @pytest.mark.parametrize(
        "image",
        [None, {}, {"vectorImage": {"rootUrl": "x", "artifacts": []}}, {"vectorImage": "x"}],
    )
    def test_missing_image(self, image: Any) -> None:
        assert normalizer.extract_logo_url(image) is None
        assert normalizer.extract_profile_image_url(image) is None


class TestParseProfileView:
    """Tests for parsing the primary profile view."""

    def test_parses_sections(self) -> None:
        payload = profile_view(
            "ada",
            positions=[
                {
                    "title": "CTO",
                    "companyName": "Acme",
                    "companyUrn": "urn:li:fs_miniCompany:42",
                    "timePeriod": {"startDate": {"year": 2021, "month": 4}},
                },
                {
                    "title": "Engineer",
                    "companyName": "Beta",
                    "timePeriod": {
                        "startDate": {"year": 2015},
                        "endDate": {"year": 2021, "month": 3},
                    },
                },
            ],
            educations=[{"schoolName": "MIT", "degreeName": "BSc", "fieldOfStudy": "Math"}],
            skills=["Python", "SQL"],
        )

        detail = normalizer.parse_profile_view(payload, "ada")

        assert detail is not None
        assert detail.full_name == "Ada Lovelace"
        assert detail.location_name == "London"
        assert detail.industry_name == "Computer Software"
        assert [e.title for e in detail.experiences] == ["CTO", "Engineer"]
        assert detail.experiences[0].organization_url == "https://www.linkedin.com/company/42"
        assert detail.experiences[0].is_current is True
        assert detail.experiences[1].is_current is False
        assert detail.educations[0].field_of_study == "Math"
        assert [s.name for s in detail.skills] == ["Python", "SQL"]

    def test_no_profile_entity(self) -> None:
        payload = {"included": [{"$type": "com.linkedin.voyager.identity.profile.Skill"}]}
        assert normalizer.parse_profile_view(payload, "ada") is None

    def test_records_without_names_are_skipped(self) -> None:
        payload = profile_view("ada", positions=[{"description": "no title"}], skills=[""])
        detail = normalizer.parse_profile_view(payload, "ada")

        assert detail is not None
        assert detail.experiences == []
        assert detail.skills == []

    @pytest.mark.parametrize("payload", [None, [], "x", {"included": [1, 2, None]}])
    def test_malformed_payload(self, payload: Any) -> None:
        assert normalizer.parse_profile_view(payload, "ada") is None


class TestToProfileDetail:
    """Tests for merging independently fetched payloads."""

    def test_skills_endpoint_replaces_view_skills(self) -> None:
        skills = {"elements": [{"name": "Rust", "endorsementCount": 12}]}

        detail = normalizer.to_profile_detail(
            "ada", profile_view("ada", skills=["Python"]), skills=skills
        )

        assert detail is not None
        assert [(s.name, s.endorsement_count) for s in detail.skills] == [("Rust", 12)]

    def test_empty_skills_endpoint_keeps_view_skills(self) -> None:
        detail = normalizer.to_profile_detail(
            "ada", profile_view("ada", skills=["Python"]), skills={"elements": []}
        )

        assert detail is not None
        assert [s.name for s in detail.skills] == ["Python"]

    def test_contact_info_overlay(self) -> None:
        contact = {
            "emailAddress": "ada@example.com",
            "phoneNumbers": [{"number": "+44 1234", "type": "MOBILE"}, {"type": "WORK"}],
            "twitterHandles": [{"name": "ada"}],
            "websites": [{"url": "https://ada.dev"}],
            "birthdate": {"month": 12, "day": 10},
        }

        detail = normalizer.to_profile_detail("ada", profile_view("ada"), contact_info=contact)

        assert detail is not None
        channels = detail.contact_channels
        assert channels.email == "ada@example.com"
        assert [p.number for p in channels.phone_numbers] == ["+44 1234"]
        assert channels.twitter_handles == ["ada"]
        assert channels.birthdate is not None
        assert channels.birthdate.day == 10
        assert detail.websites == ["https://ada.dev"]

    def test_fallback_positions_used_only_when_view_has_none(self) -> None:
        positions = {"elements": [{"title": "CTO", "companyName": "Acme"}]}

        detail = normalizer.to_profile_detail("ada", profile_view("ada"), positions=positions)
        assert detail is not None
        assert [e.title for e in detail.experiences] == ["CTO"]

        with_view = normalizer.to_profile_detail(
            "ada",
            profile_view("ada", positions=[{"title": "Founder", "companyName": "Own"}]),
            positions=positions,
        )
        assert with_view is not None
        assert [e.title for e in with_view.experiences] == ["Founder"]

    def test_fallback_educations(self) -> None:
        educations = {"data": {"elements": [{"schoolName": "Oxford"}]}}

        detail = normalizer.to_profile_detail("ada", profile_view("ada"), educations=educations)

        assert detail is not None
        assert [e.institution for e in detail.educations] == ["Oxford"]

    def test_malformed_secondary_payloads_ignored(self) -> None:
        detail = normalizer.to_profile_detail(
            "ada", profile_view("ada"), contact_info="x", skills=[1], positions={"elements": 3}
        )

        assert detail is not None
        assert detail.skills == []
        assert detail.contact_channels.email is None

    def test_no_profile(self) -> None:
        assert normalizer.to_profile_detail("ada", {"included": []}) is None


class TestConnectionFromDetail:
    """Tests for building a summary record from a full profile."""

    def test_current_position_wins_over_headline(self) -> None:
        detail = ProfileDetail(
            public_identifier="ada",
            first_name="Ada",
            last_name="Lovelace",
            headline="Speaker at Conferences",
            experiences=[
                Experience(title="Engineer", organization="Old", end_date=ProfileDate(year=2019)),
                Experience(title="CTO", organization="Acme"),
            ],
        )

        connection = normalizer.connection_from_detail(detail)

        assert connection.network_url == "https://www.linkedin.com/in/ada"
        assert connection.display_name == "Ada Lovelace"
        assert connection.title == "CTO"
        assert connection.organization == "Acme"

    def test_headline_used_without_current_position(self) -> None:
        detail = ProfileDetail(public_identifier="ada", headline="Engineer at Acme")

        connection = normalizer.connection_from_detail(detail)

        assert connection.title == "Engineer"
        assert connection.organization == "Acme"
