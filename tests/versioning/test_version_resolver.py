from pathlib import Path

import pytest

from mediainterface_build.builders.toolchain import InvocationResult
from mediainterface_build.errors import ConfigurationError
from mediainterface_build.versioning import (
    GitTagLocator,
    VersionResolver,
    VersionSpec,
    strip_version_decorations,
)


def _resolver(tag=None, **kwargs) -> VersionResolver:
    return VersionResolver(tag_lookup=lambda: tag, **kwargs)


def test_outside_ci_uses_development_version():
    spec = VersionSpec(is_ci=False, is_tag_release=True, ref_name="v9.9.9")

    assert _resolver(tag="v3.0.0").resolve(spec) == "1.0-SNAPSHOT"


def test_tag_release_strips_leading_v():
    spec = VersionSpec(is_ci=True, is_tag_release=True, ref_name="v2.3.0")

    assert _resolver().resolve(spec) == "2.3.0"


def test_tag_release_without_prefix_is_used_verbatim():
    spec = VersionSpec(is_ci=True, is_tag_release=True, ref_name="2.3.0-rc1")

    assert _resolver().resolve(spec) == "2.3.0-rc1"


def test_blank_tag_ref_falls_back_to_snapshot():
    spec = VersionSpec(is_ci=True, is_tag_release=True, ref_name="   ")

    assert _resolver(tag="v1.4.0").resolve(spec) == "1.4.0-SNAPSHOT"


def test_override_suffix_is_not_doubled():
    spec = VersionSpec(is_ci=True, base_version_override="2.4.0-SNAPSHOT")

    assert _resolver(tag="v1.0.0").resolve(spec) == "2.4.0-SNAPSHOT"


def test_override_takes_precedence_over_tag():
    spec = VersionSpec(is_ci=True, base_version_override="v5.0.0")

    assert _resolver(tag="v1.0.0").resolve(spec) == "5.0.0-SNAPSHOT"


def test_latest_tag_is_used_when_no_override():
    spec = VersionSpec(is_ci=True, ref_name="main")

    assert _resolver(tag="v1.7.2").resolve(spec) == "1.7.2-SNAPSHOT"


def test_no_tags_uses_default_base():
    spec = VersionSpec(is_ci=True, ref_name="main")

    assert _resolver(tag=None).resolve(spec) == "0.1.0-SNAPSHOT"
    assert VersionResolver().resolve(spec) == "0.1.0-SNAPSHOT"


def test_commit_policy_appends_short_sha():
    spec = VersionSpec(is_ci=True, short_commit_sha="abc1234")

    assert _resolver(tag="v1.2.0", snapshot_policy="commit").resolve(spec) == "1.2.0-SNAPSHOT-abc1234"


def test_commit_policy_without_sha_is_plain():
    spec = VersionSpec(is_ci=True)

    assert _resolver(tag="v1.2.0", snapshot_policy="commit").resolve(spec) == "1.2.0-SNAPSHOT"


def test_unknown_policy_is_rejected():
    with pytest.raises(ConfigurationError, match="nightly"):
        VersionResolver(snapshot_policy="nightly")


def test_policy_name_is_case_insensitive():
    resolver = _resolver(tag="v1.2.0", snapshot_policy=" Commit ")

    assert resolver.snapshot_policy == "commit"
    assert resolver.resolve(VersionSpec(is_ci=True, short_commit_sha="abc1234")) == "1.2.0-SNAPSHOT-abc1234"


def test_resolution_is_stable_across_calls():
    resolver = _resolver(tag="v3.1.0")
    spec = VersionSpec(is_ci=True)

    assert resolver.resolve(spec) == resolver.resolve(spec)


@pytest.mark.parametrize("raw, expected", [
    ("v1.2.3", "1.2.3"),
    ("1.2.3-SNAPSHOT", "1.2.3"),
    ("v1.2.3-SNAPSHOT", "1.2.3"),
    (" 1.2.3 ", "1.2.3"),
])
def test_strip_version_decorations(raw, expected):
    assert strip_version_decorations(raw) == expected


def test_spec_from_github_actions_environment():
    spec = VersionSpec.from_environment({
        "GITHUB_ACTIONS": "TRUE",
        "GITHUB_REF_TYPE": "tag",
        "GITHUB_REF_NAME": "v1.0.0",
        "GITHUB_SHA": "0123456789abcdef",
        "SNAPSHOT_BASE_VERSION": "  ",
    })

    assert spec.is_ci is True
    assert spec.is_tag_release is True
    assert spec.ref_name == "v1.0.0"
    assert spec.short_commit_sha == "0123456"
    assert spec.base_version_override is None


def test_spec_from_empty_environment():
    spec = VersionSpec.from_environment({})

    assert spec.is_ci is False
    assert spec.is_tag_release is False


def test_ci_flag_must_be_true():
    assert VersionSpec.from_environment({"CI": "1"}).is_ci is False
    assert VersionSpec.from_environment({"CI": "true"}).is_ci is True


def test_git_locator_prefers_v_tags(invoker_factory):
    def on_run(cmd):
        if "--match" in cmd:
            return InvocationResult(0, "v2.0.0\n")
        return InvocationResult(0, "other-tag\n")

    invoker = invoker_factory(on_run=on_run)
    locator = GitTagLocator(Path("."), invoker)

    assert locator.latest_tag() == "v2.0.0"
    assert len(invoker.commands("git")) == 1


def test_git_locator_falls_back_to_any_tag(invoker_factory):
    def on_run(cmd):
        if "--match" in cmd:
            return InvocationResult(128, "fatal: No names found")
        return InvocationResult(0, "release-7\n")

    locator = GitTagLocator(Path("."), invoker_factory(on_run=on_run))

    assert locator() == "release-7"


def test_git_failures_yield_default_base(invoker_factory):
    invoker = invoker_factory(on_run=lambda cmd: InvocationResult(124, "", timed_out=True))
    locator = GitTagLocator(Path("."), invoker, timeout=0.5)
    resolver = VersionResolver(tag_lookup=locator.latest_tag)

    assert resolver.resolve(VersionSpec(is_ci=True)) == "0.1.0-SNAPSHOT"


def test_git_missing_executable_yields_none(tmp_path):
    from mediainterface_build.builders.toolchain import ToolchainInvoker

    class MissingGit(ToolchainInvoker):
        def run(self, working_dir, command, args=(), env_overrides=None, timeout=None):
            return super().run(working_dir, "definitely-not-git-xyz", args, env_overrides, timeout)

    assert GitTagLocator(tmp_path, MissingGit()).latest_tag() is None
