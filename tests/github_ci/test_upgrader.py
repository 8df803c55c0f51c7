"""Tests for the upgrade engine, driven by a fake resolver."""

from __future__ import annotations

import pytest

from github_ci.actions.models import CacheStats
from github_ci.core.config import Config
from github_ci.exceptions import NoMatchingTagsError, UpgradeError
from github_ci.upgrader.upgrader import Upgrader, should_update
from github_ci.workflow.workflow import Workflow

SHA_A = "a" * 40
SHA_B = "b" * 40


class FakeResolver:
    """Answers version queries from a dict keyed by ``owner/repo``.

    ``latest`` maps to ``(tag, sha)`` or to an exception to raise.
    """

    def __init__(self, latest=None, tags_for_commits=None):
        self.latest = latest or {}
        self.tags_for_commits = tags_for_commits or {}
        self.calls: list[tuple] = []

    def _answer(self, owner, repo):
        result = self.latest[f"{owner}/{repo}"]
        if isinstance(result, Exception):
            raise result
        return result

    async def get_commit_hash(self, owner, repo, ref):
        self.calls.append(("hash", owner, repo, ref))
        return SHA_A

    async def get_latest_version(self, owner, repo, current_version, pattern):
        self.calls.append(("constrained", owner, repo, current_version, pattern))
        return self._answer(owner, repo)

    async def get_latest_version_unconstrained(self, owner, repo):
        self.calls.append(("unconstrained", owner, repo))
        return self._answer(owner, repo)

    async def get_tag_for_commit(self, owner, repo, commit_hash):
        self.calls.append(("tag_for_commit", owner, repo, commit_hash))
        return self.tags_for_commits.get(commit_hash, "")

    async def get_latest_minor_version(self, owner, repo, major_version):
        raise NotImplementedError

    def cache_stats(self):
        return CacheStats(hits=2, misses=3)


def _config(fmt="tag", **constraints):
    cfg = Config()
    cfg.upgrade.format = fmt
    for name, constraint in constraints.items():
        cfg.set_action_constraint(name, constraint)
    return cfg


def _checkout_config(fmt="tag", constraint="^1.0.0"):
    cfg = _config(fmt)
    cfg.set_action_constraint("actions/checkout", constraint)
    return cfg


def _steps(*uses_lines: str) -> str:
    body = "".join(f"      - uses: {line}\n" for line in uses_lines)
    return f"jobs:\n  build:\n    steps:\n{body}"


class TestShouldUpdate:
    @pytest.mark.parametrize(
        "current, latest, pattern, expected",
        [
            ("v1.0.0", "v1.1.0", "", True),
            ("v1.1.0", "v1.1.0", "", False),
            ("v1", "v1.0.0", "", False),
            ("v1.0.0", "", "", False),
            ("v3", "v1.9.0", "^1.0.0", True),
            ("v1.0.0", "v2.0.0", "~1.0.0", False),
            (SHA_A, "v1.0.0", "", True),
        ],
    )
    def test_should_update(self, current, latest, pattern, expected):
        assert should_update(current, latest, pattern) is expected


class TestCheckForUpdate:
    @pytest.mark.anyio
    async def test_constraint_selects_rewrite(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v3")))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})
        upgrader = Upgrader([wf], _checkout_config(), resolver)

        updates = await upgrader.dry_run()

        assert len(updates) == 1
        assert updates[0].new_uses == "actions/checkout@v1.9.0"
        assert updates[0].current_tag == "v3"
        assert resolver.calls == [("constrained", "actions", "checkout", "v3", "^1.0.0")]

    @pytest.mark.anyio
    async def test_unlisted_action_uses_unconstrained(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/cache@v3")))
        resolver = FakeResolver({"actions/cache": ("v4.0.2", SHA_B)})
        upgrader = Upgrader([wf], _config(), resolver)

        updates = await upgrader.dry_run()

        assert [u.new_uses for u in updates] == ["actions/cache@v4.0.2"]
        assert resolver.calls == [("unconstrained", "actions", "cache")]

    @pytest.mark.anyio
    async def test_up_to_date(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v1.9.0")))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})
        assert await Upgrader([wf], _checkout_config(), resolver).dry_run() == []

    @pytest.mark.anyio
    async def test_hash_equal_to_latest_in_hash_format(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps(f"actions/checkout@{SHA_A} # v1.9.0")))
        resolver = FakeResolver(
            {"actions/checkout": ("v1.9.0", SHA_A)}, tags_for_commits={SHA_A: "v1.9.0"}
        )
        assert await Upgrader([wf], _checkout_config("hash"), resolver).dry_run() == []

    @pytest.mark.anyio
    async def test_uppercase_hash_equal_to_latest(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps(f"actions/checkout@{SHA_A.upper()} # v1.9.0")))
        resolver = FakeResolver(
            {"actions/checkout": ("v1.9.0", SHA_A)}, tags_for_commits={SHA_A: "v1.9.0"}
        )
        assert await Upgrader([wf], _checkout_config("hash"), resolver).dry_run() == []

    @pytest.mark.anyio
    async def test_hash_equal_to_latest_rewritten_to_tag(self, write_workflow):
        path = write_workflow(_steps(f"actions/checkout@{SHA_A} # v1.9.0"))
        wf = Workflow.load(path)
        resolver = FakeResolver(
            {"actions/checkout": ("v1.9.0", SHA_A)}, tags_for_commits={SHA_A: "v1.9.0"}
        )

        updates = await Upgrader([wf], _checkout_config("tag"), resolver).upgrade()

        assert [u.new_uses for u in updates] == ["actions/checkout@v1.9.0"]
        assert path.read_text() == _steps("actions/checkout@v1.9.0")

    @pytest.mark.anyio
    async def test_unresolvable_hash_warns(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps(f"actions/checkout@{SHA_B}")))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        updates = await Upgrader([wf], _checkout_config(), resolver).dry_run()

        assert len(updates) == 1
        assert updates[0].current_tag == SHA_B
        assert updates[0].warning == (
            "cannot resolve hash bbbbbbbbbbbb to a tag (may be unreleased commit)"
        )

    @pytest.mark.anyio
    async def test_unparseable_reference_skipped(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("not-an-action@v1", "actions/checkout@v3")))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        updates = await Upgrader([wf], _checkout_config(), resolver).dry_run()

        assert [u.action.uses for u in updates] == ["actions/checkout@v3"]
        assert len(resolver.calls) == 1

    @pytest.mark.anyio
    async def test_composite_action_path(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("github/codeql-action/init@v2")))
        resolver = FakeResolver({"github/codeql-action": ("v3.1.0", SHA_A)})
        cfg = _config()
        cfg.set_action_constraint("github/codeql-action/init", "^3.0.0")

        updates = await Upgrader([wf], cfg, resolver).dry_run()

        assert [u.new_uses for u in updates] == ["github/codeql-action/init@v3.1.0"]
        assert resolver.calls == [("constrained", "github", "codeql-action", "v2", "^3.0.0")]

    @pytest.mark.anyio
    async def test_major_format_at_latest_unchanged(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v4")))
        resolver = FakeResolver({"actions/checkout": ("v4.2.0", SHA_A)})
        cfg = _checkout_config("major", "^4.0.0")
        assert await Upgrader([wf], cfg, resolver).dry_run() == []

    @pytest.mark.anyio
    async def test_major_format_bumps_major(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v3")))
        resolver = FakeResolver({"actions/checkout": ("v4.2.0", SHA_A)})

        updates = await Upgrader([wf], _checkout_config("major"), resolver).dry_run()

        assert updates[0].new_uses == "actions/checkout@v4"
        assert updates[0].replacement() == ("v4", "v4.2.0")

    @pytest.mark.anyio
    async def test_format_change_only(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v1.9.0")))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        updates = await Upgrader([wf], _checkout_config("hash"), resolver).dry_run()

        assert updates[0].replacement() == (SHA_A, "v1.9.0")
        assert updates[0].new_uses == f"actions/checkout@{SHA_A}"


class TestFindUpdates:
    @pytest.mark.anyio
    async def test_failure_carries_partial_progress(self, write_workflow):
        wf = Workflow.load(write_workflow(_steps("actions/checkout@v3", "actions/cache@v3")))
        resolver = FakeResolver(
            {
                "actions/checkout": ("v1.9.0", SHA_A),
                "actions/cache": NoMatchingTagsError("no compatible tags"),
            }
        )

        with pytest.raises(UpgradeError, match="failed to check actions/cache") as exc_info:
            await Upgrader([wf], _checkout_config(), resolver).dry_run()

        assert [u.new_uses for u in exc_info.value.partial] == ["actions/checkout@v1.9.0"]
        assert isinstance(exc_info.value.__cause__, NoMatchingTagsError)

    @pytest.mark.anyio
    async def test_multiple_workflows_in_order(self, write_workflow):
        first = Workflow.load(write_workflow(_steps("actions/checkout@v3"), "a.yml"))
        second = Workflow.load(write_workflow(_steps("actions/checkout@v2"), "b.yml"))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        updates = await Upgrader([first, second], _checkout_config(), resolver).dry_run()

        assert [(u.workflow.file.name, u.current_tag) for u in updates] == [
            ("a.yml", "v3"),
            ("b.yml", "v2"),
        ]

    def test_cache_stats_from_resolver(self):
        upgrader = Upgrader([], Config(), FakeResolver())
        assert upgrader.cache_stats() == CacheStats(hits=2, misses=3)


class TestUpgrade:
    @pytest.mark.anyio
    async def test_dry_run_writes_nothing(self, write_workflow):
        content = _steps("actions/checkout@v3")
        path = write_workflow(content)
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        await Upgrader([Workflow.load(path)], _checkout_config(), resolver).dry_run()

        assert path.read_text() == content

    @pytest.mark.anyio
    async def test_tag_format_written(self, write_workflow):
        path = write_workflow(_steps("actions/checkout@v3"))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        await Upgrader([Workflow.load(path)], _checkout_config(), resolver).upgrade()

        assert path.read_text() == _steps("actions/checkout@v1.9.0")

    @pytest.mark.anyio
    async def test_hash_format_written_with_comment(self, write_workflow):
        path = write_workflow(_steps("actions/checkout@v3"))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        await Upgrader([Workflow.load(path)], _checkout_config("hash"), resolver).upgrade()

        assert path.read_text() == _steps(f"actions/checkout@{SHA_A} # v1.9.0")

    @pytest.mark.anyio
    async def test_duplicate_references(self, write_workflow):
        path = write_workflow(_steps("actions/checkout@v3", "actions/checkout@v3"))
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        updates = await Upgrader([Workflow.load(path)], _checkout_config(), resolver).upgrade()

        assert len(updates) == 2
        assert path.read_text() == _steps("actions/checkout@v1.9.0", "actions/checkout@v1.9.0")

    @pytest.mark.anyio
    async def test_comment_spacing_normalized(self, write_workflow):
        path = write_workflow(
            _steps("actions/checkout@v3", "actions/cache@v4.0.2    #keep me")
        )
        resolver = FakeResolver(
            {"actions/checkout": ("v1.9.0", SHA_A), "actions/cache": ("v4.0.2", SHA_B)}
        )

        await Upgrader([Workflow.load(path)], _checkout_config(), resolver).upgrade()

        assert path.read_text() == _steps(
            "actions/checkout@v1.9.0", "actions/cache@v4.0.2 # keep me"
        )

    @pytest.mark.anyio
    async def test_nothing_to_do_leaves_file(self, write_workflow):
        content = _steps("actions/checkout@v1.9.0    #  odd spacing")
        path = write_workflow(content)
        resolver = FakeResolver({"actions/checkout": ("v1.9.0", SHA_A)})

        assert await Upgrader([Workflow.load(path)], _checkout_config(), resolver).upgrade() == []
        assert path.read_text() == content
