import pytest
import yaml

from mediainterface_build.errors import ConfigurationError, UnknownPublishModuleError
from mediainterface_build.publishing import (
    PublishDestination,
    PublishSelector,
    parse_module_filter,
    resolve_destination,
    select,
)

KNOWN = {"core", "linux", "windows", "macos", "all", "examples"}


def test_empty_request_selects_every_module():
    assert select(set(), KNOWN) == KNOWN


def test_subset_is_returned_unchanged():
    assert select({"core", "linux"}, KNOWN) == {"core", "linux"}


def test_unknown_modules_are_reported():
    with pytest.raises(UnknownPublishModuleError) as exc_info:
        select({"core", "bogus", "alpha"}, KNOWN)

    assert exc_info.value.unknown == ["alpha", "bogus"]
    assert str(exc_info.value) == "Unknown publish.modules entries: alpha, bogus"
    assert isinstance(exc_info.value, ConfigurationError)


def test_selection_is_idempotent():
    once = select({"core", "macos"}, KNOWN)

    assert select(once, KNOWN) == once


@pytest.mark.parametrize("raw, expected", [
    (None, set()),
    ("", set()),
    (" , ,", set()),
    ("core", {"core"}),
    ("core, linux ,windows", {"core", "linux", "windows"}),
    (":core,:macos", {"core", "macos"}),
])
def test_parse_module_filter(raw, expected):
    assert parse_module_filter(raw) == expected


def test_destination_follows_tag_release():
    assert resolve_destination(True) is PublishDestination.RELEASE
    assert resolve_destination(False) is PublishDestination.SNAPSHOT


def test_selector_known_modules_come_from_config(config):
    assert PublishSelector(config).known == KNOWN


def test_artifact_ids(config):
    selector = PublishSelector(config)

    assert selector.artifact_id("core") == "core"
    assert selector.artifact_id("all") == "all"
    assert selector.artifact_id("examples") == "examples"


def test_publication_metadata_defaults(config):
    publication = PublishSelector(config).build_publication("linux", "1.2.0")

    assert publication.group == "org.endlesssource.mediainterface"
    assert publication.artifact_id == "linux"
    assert publication.name == "mediainterface-linux"
    assert publication.version == "1.2.0"
    assert publication.license_name == "Apache License, Version 2.0"
    assert publication.scm_connection.startswith("scm:git:")


def test_publication_metadata_overrides(config):
    publication = PublishSelector(config).build_publication("core", "1.2.0", {
        "pom.url": "https://example.org/mi",
        "pom.developer.name": "Someone Else",
    })

    assert publication.url == "https://example.org/mi"
    assert publication.developer_name == "Someone Else"
    assert publication.developer_id == "endlesssource"


def test_plan_uses_aggregation_task_for_destination(config):
    selector = PublishSelector(config)

    release = selector.build_plan({"core"}, "2.0.0", PublishDestination.RELEASE)
    snapshot = selector.build_plan({"core"}, "2.0.0-SNAPSHOT", PublishDestination.SNAPSHOT)

    assert release.aggregation_task == "publishAggregationToCentralPortal"
    assert snapshot.aggregation_task == "publishAggregationToCentralSnapshots"


def test_plan_keeps_configured_order(config):
    plan = PublishSelector(config).build_plan({"macos", "core", "all"}, "1.0",
                                              PublishDestination.SNAPSHOT)

    assert plan.modules == ["core", "macos", "all"]
    assert [p.artifact_id for p in plan.publications] == ["core", "macos", "all"]


def test_plan_write_round_trips_as_yaml(config, tmp_path):
    plan = PublishSelector(config).build_plan({"core"}, "1.0", PublishDestination.SNAPSHOT)
    path = plan.write(tmp_path / "publish" / "plan.yaml")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["destination"] == "snapshot"
    assert data["modules"] == ["core"]
    assert data["publications"][0]["group"] == "org.endlesssource.mediainterface"
    assert not list(path.parent.glob("*.tmp"))


def test_project_names_select_their_module(config):
    selector = PublishSelector(config)

    assert selector.select(parse_module_filter(":mediainterface-core, :examples")) == {"core", "examples"}
    assert selector.select({"mediainterface-windows", "linux"}) == {"windows", "linux"}


def test_project_names_still_report_unknown_entries(config):
    with pytest.raises(UnknownPublishModuleError) as exc_info:
        PublishSelector(config).select({"mediainterface-core", "bogus"})

    assert exc_info.value.unknown == ["bogus"]
