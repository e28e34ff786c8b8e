from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import NOW, make_edge
from github_stars.errors import ErrorCode
from github_stars.models import FundingPlatform, Release, Repository, Owner
from github_stars.serialization import from_stored_row, from_wire_format, normalize_url, to_stored_row


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://GitHub.com/Octocat/Hello", "https://github.com/Octocat/Hello"),
        ("github.com/octocat", "https://github.com/octocat"),
        ("//example.org/", "https://example.org"),
        ("  HTTP://Example.org/docs?q=1  ", "http://example.org/docs?q=1"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "https://"])
def test_normalize_url_rejects_values_without_host(raw):
    with pytest.raises(ValueError):
        normalize_url(raw)


def test_from_wire_format_parses_nested_fields():
    edge = make_edge(
        "R1",
        owner="acme",
        name="rocket",
        topics=[("python", 5), ("cli", 20), ("async", 5)],
        languages=["Rust", "Python"],
        funding=[("GITHUB", "https://github.com/sponsors/acme"), ("PATREON", "patreon.com/acme")],
        description="  Fast things  ",
    )
    edge["node"]["owner"]["__typename"] = "Organization"
    edge["node"]["latestRelease"] = {
        "name": None,
        "publishedAt": "2024-03-01T00:00:00Z",
        "url": "https://github.com/acme/rocket/releases/tag/v1.2.0",
    }

    repository = from_wire_format(edge).unwrap()

    assert repository.id == "R1"
    assert repository.full_name == "acme/rocket"
    assert repository.owner.is_organization is True
    assert repository.description == "Fast things"
    assert repository.main_language == "Rust"
    assert repository.starred_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert [topic.name for topic in repository.repository_topics] == ["cli", "async", "python"]
    assert [link.platform for link in repository.funding_links] == [FundingPlatform.GITHUB, FundingPlatform.PATREON]
    assert repository.funding_links[1].url == "https://patreon.com/acme"
    assert repository.license_info is not None and repository.license_info.spdx_id == "MIT"
    assert repository.latest_release_name == "v1.2.0"
    assert repository.is_starred


def test_from_wire_format_keeps_unknown_funding_platform():
    edge = make_edge("R1", funding=[("SOMETHING_NEW", "https://example.org/fund")])

    repository = from_wire_format(edge).unwrap()

    assert repository.funding_links[0].platform == "SOMETHING_NEW"
    assert repository.funding_links[0].platform_name == "SOMETHING_NEW"


@pytest.mark.parametrize(
    "mutate",
    [
        lambda edge: edge["node"].pop("id"),
        lambda edge: edge.pop("starredAt"),
        lambda edge: edge["node"].update(url=""),
        lambda edge: edge["node"].update(stargazerCount="many"),
    ],
)
def test_from_wire_format_reports_malformed_edges(mutate):
    edge = make_edge("R1")
    mutate(edge)

    result = from_wire_format(edge)

    assert result.is_err()
    assert result.error.code is ErrorCode.DESERIALIZATION_FAILED


def test_stored_row_round_trip_preserves_repository():
    edge = make_edge(
        "R1",
        owner="acme",
        topics=[("python", 3), ("cli", 7)],
        languages=["Python", "C"],
        funding=[("KO_FI", "https://ko-fi.com/x"), ("SOMETHING_NEW", "https://example.org/fund")],
    )
    node = edge["node"]
    node["owner"]["__typename"] = "Organization"
    node["homepageUrl"] = "Acme.Example.org/docs"
    node["licenseInfo"]["nickname"] = "Expat"
    node["isArchived"] = node["isFork"] = node["isPrivate"] = node["isTemplate"] = True
    node["latestRelease"] = {
        "name": "Spring",
        "publishedAt": "2024-03-01T08:30:00Z",
        "url": "https://github.com/acme/r1/releases/tag/v1",
    }
    repository = from_wire_format(edge).unwrap()
    repository.imported_at = NOW

    restored = from_stored_row(to_stored_row(repository, NOW), repository.repository_topics).unwrap()

    assert repository.homepage_url == "https://acme.example.org/docs"
    assert repository.owner.is_organization is True
    assert repository.license_info.nickname == "Expat"
    assert restored == repository


def test_license_without_spdx_id_is_dropped_on_both_paths():
    edge = make_edge("R1")
    edge["node"]["licenseInfo"] = {"name": "Other", "nickname": None, "spdxId": None, "url": None}
    repository = from_wire_format(edge).unwrap()
    repository.imported_at = NOW

    restored = from_stored_row(to_stored_row(repository, NOW), repository.repository_topics).unwrap()

    assert repository.license_info is None
    assert restored == repository


def test_from_stored_row_without_optional_columns():
    repository = Repository(
        id="R9",
        name="bare",
        url="https://github.com/octocat/bare",
        owner=Owner(login="octocat", url="https://github.com/octocat"),
        created_at=NOW,
        starred_at=NOW,
        updated_at=NOW,
        latest_release=Release(url="https://github.com/octocat/bare/releases/tag/v0.1"),
    )
    row = to_stored_row(repository, NOW)
    row.update(languages=None, fundingLinks=None)

    restored = from_stored_row(row).unwrap()

    assert restored.languages == []
    assert restored.funding_links == []
    assert restored.main_language == "Other"
    assert restored.license_info is None
    assert restored.pushed_at is None


def test_from_stored_row_reports_corrupt_json():
    repository = from_wire_format(make_edge("R1")).unwrap()
    row = to_stored_row(repository, NOW)
    row["languages"] = "[not json"

    result = from_stored_row(row)

    assert result.is_err()
    assert result.error.code is ErrorCode.DESERIALIZATION_FAILED
