"""
Tests for manifest parsing, snapshots and diffing.
"""

import pytest

from reposcm.core.errors import MalformedManifestError
from reposcm.core.manifest import (
    ChangeSet,
    ManifestSnapshot,
    ProjectState,
    diff,
    parse_manifest,
    parse_projects,
)



def snap(**projects: str) -> ManifestSnapshot:
    return ManifestSnapshot(projects={k.replace("__", "/"): v for k, v in projects.items()})


# ==============================================================================
# Parsing
# ==============================================================================


class TestParseProjects:
    """Test extraction of the server path -> revision map."""

    def test_explicit_and_default_revisions(self, base_manifest):
        """Projects without a revision inherit the manifest default."""
        projects = parse_projects(base_manifest)
        assert projects == {
            "platform/build": "abc",
            "platform/foo": "abc",
            "platform/docs": "refs/heads/main",
        }

    def test_document_order_is_kept(self, base_manifest):
        """Projects come back in document order."""
        assert list(parse_projects(base_manifest)) == [
            "platform/build",
            "platform/foo",
            "platform/docs",
        ]

    def test_server_path_is_name_not_path(self):
        """The key is the name attribute, not the checkout path."""
        projects = parse_projects(
            '<manifest><project name="platform/foo" path="foo" revision="r1"/></manifest>'
        )
        assert projects == {"platform/foo": "r1"}

    def test_no_default_all_explicit(self):
        """A manifest without a default is fine if every project has a revision."""
        projects = parse_projects(
            '<manifest><project name="a" revision="1"/><project name="b" revision="2"/></manifest>'
        )
        assert projects == {"a": "1", "b": "2"}

    def test_unknown_elements_ignored(self):
        """Remotes, notices and other extensions do not affect the result."""
        projects = parse_projects(
            "<manifest>"
            '<notice>hello</notice><remote name="r" fetch=".."/>'
            '<default revision="main"/>'
            '<project name="a"><copyfile src="x" dest="y"/></project>'
            "</manifest>"
        )
        assert projects == {"a": "main"}

    def test_empty_manifest_has_no_projects(self):
        """A manifest element with no projects parses to an empty map."""
        assert parse_projects("<manifest/>") == {}

    def test_missing_revision_without_default(self):
        """A project with neither explicit nor default revision is malformed."""
        with pytest.raises(MalformedManifestError, match="no revision"):
            parse_projects('<manifest><project name="platform/foo"/></manifest>')

    @pytest.mark.parametrize(
        "text",
        [
            '<manifest><default revision=""/><project name="a"/></manifest>',
            '<manifest><project name="a" revision=""/></manifest>',
        ],
    )
    def test_empty_revision_is_unresolved(self, text):
        """An empty revision, explicit or default, does not resolve a project."""
        with pytest.raises(MalformedManifestError, match="no revision"):
            parse_projects(text)

    def test_missing_name(self):
        """A project without a name is malformed."""
        with pytest.raises(MalformedManifestError, match="no name"):
            parse_projects('<manifest><project path="foo" revision="r"/></manifest>')

    def test_duplicate_name(self):
        """A server path declared twice is malformed."""
        with pytest.raises(MalformedManifestError, match="more than once"):
            parse_projects(
                '<manifest><project name="a" revision="1"/>'
                '<project name="a" revision="2"/></manifest>'
            )

    def test_multiple_default_revisions(self):
        """At most one default revision is allowed."""
        with pytest.raises(MalformedManifestError, match="default revisions"):
            parse_projects(
                '<manifest><default revision="a"/><default revision="b"/>'
                '<project name="x"/></manifest>'
            )

    @pytest.mark.parametrize("text", ["", "   \n", "not xml at all", "<manifest>"])
    def test_unparsable_text(self, text):
        """Empty or broken XML is malformed."""
        with pytest.raises(MalformedManifestError):
            parse_projects(text)


class TestParseManifest:
    """Test snapshot construction."""

    def test_snapshot_fields(self, base_manifest):
        """Raw text, pinned revision and branch are kept on the snapshot."""
        snapshot = parse_manifest(base_manifest, revision="0123abcd", branch="main")
        assert snapshot.manifest == base_manifest
        assert snapshot.revision == "0123abcd"
        assert snapshot.branch == "main"
        assert snapshot.revision_of("platform/foo") == "abc"
        assert snapshot.revision_of("platform/missing") is None

    def test_empty_branch_becomes_none(self, base_manifest):
        """An empty branch string is stored as None."""
        assert parse_manifest(base_manifest, branch="").branch is None

    def test_no_partial_snapshot_on_error(self):
        """A malformed manifest raises instead of returning a snapshot."""
        result = None
        with pytest.raises(MalformedManifestError):
            result = parse_manifest('<manifest><project name="a"/></manifest>')
        assert result is None


class TestManifestSnapshot:
    """Test snapshot value semantics."""

    def test_equality_uses_projects_only(self):
        """Raw text, revision and branch do not affect equality."""
        a = ManifestSnapshot(manifest="x", revision="1", branch="main", projects={"a": "r"})
        b = ManifestSnapshot(manifest="y", revision="2", branch="dev", projects={"a": "r"})
        assert a == b
        assert hash(a) == hash(b)

    def test_different_revisions_not_equal(self):
        assert snap(a="1") != snap(a="2")

    def test_empty_snapshot_is_truthy(self):
        """A snapshot with no projects is still a snapshot."""
        assert ManifestSnapshot()

    def test_frozen(self):
        """Snapshots are immutable."""
        snapshot = snap(a="1")
        with pytest.raises(Exception):
            snapshot.branch = "other"

    def test_json_round_trip(self, base_manifest):
        """Snapshots survive serialization through pydantic."""
        original = parse_manifest(base_manifest, revision="0123abcd", branch="main")
        restored = ManifestSnapshot.model_validate_json(original.model_dump_json())
        assert restored == original
        assert restored.branch == "main"
        assert restored.manifest == base_manifest


# ==============================================================================
# Diffing
# ==============================================================================


class TestDiff:
    """Test the semantic diff between two snapshots."""

    def test_changed_revision(self):
        """platform/foo abc -> def is a single changed entry."""
        baseline = snap(platform__foo="abc")
        current = snap(platform__foo="def")

        result = diff(baseline, current)

        assert result.changed == [ProjectState("platform/foo", "def", previous_revision="abc")]
        assert result.added == []
        assert result.removed == []

    def test_added_and_removed(self):
        result = diff(snap(a="1", b="2"), snap(b="2", c="3"))
        assert [p.server_path for p in result.added] == ["c"]
        assert [p.server_path for p in result.removed] == ["a"]
        assert result.changed == []

    def test_removed_keeps_baseline_revision(self):
        """A removed project reports the revision it had in the baseline."""
        result = diff(snap(a="1"), snap())
        assert result.removed == [ProjectState("a", "1")]

    def test_diff_with_itself_is_empty(self, base_manifest):
        """diff(A, A) is always empty."""
        for snapshot in (snap(), snap(a="1"), parse_manifest(base_manifest)):
            assert diff(snapshot, snapshot).is_empty

    def test_symmetry(self):
        """diff(A, B).added == diff(B, A).removed and vice versa."""
        a = snap(x="1", y="2", z="3")
        b = snap(y="2", z="4", w="5")
        forward, backward = diff(a, b), diff(b, a)

        assert [p.server_path for p in forward.added] == [p.server_path for p in backward.removed]
        assert [p.server_path for p in forward.removed] == [p.server_path for p in backward.added]
        assert {p.server_path for p in forward.changed} == {
            p.server_path for p in backward.changed
        }

    def test_lists_are_disjoint(self):
        """A server path appears in at most one list."""
        result = diff(snap(a="1", b="2", c="3"), snap(b="9", c="3", d="4"))
        paths = [p.server_path for p in result]
        assert len(paths) == len(set(paths))

    def test_no_ref_normalization(self):
        """Revisions compare as raw strings."""
        result = diff(snap(a="main"), snap(a="refs/heads/main"))
        assert len(result.changed) == 1

    def test_missing_baseline_means_all_added(self, base_manifest):
        """With no baseline every project is added."""
        current = parse_manifest(base_manifest)
        result = diff(None, current)
        assert [p.server_path for p in result.added] == list(current.projects)
        assert result.removed == [] and result.changed == []

    def test_branch_change_alone_is_not_a_change(self):
        """Branch names never produce ChangeSet entries."""
        a = ManifestSnapshot(branch="main", projects={"a": "1"})
        b = ManifestSnapshot(branch="dev", projects={"a": "1"})
        assert diff(a, b).is_empty

    def test_real_manifests(self, base_manifest, changed_foo_manifest):
        result = diff(parse_manifest(base_manifest), parse_manifest(changed_foo_manifest))
        assert [str(p) for p in result.changed] == ["platform/foo abc -> def"]


class TestChangeSet:
    """Test ChangeSet helpers."""

    def test_empty(self):
        change_set = ChangeSet()
        assert change_set.is_empty
        assert not change_set
        assert len(change_set) == 0
        assert change_set.affected_paths() == set()

    def test_affected_paths_union(self):
        change_set = ChangeSet(
            added=[ProjectState("a", "1")],
            removed=[ProjectState("b", "2")],
            changed=[ProjectState("c", "4", previous_revision="3")],
        )
        assert change_set.affected_paths() == {"a", "b", "c"}
        assert len(change_set) == 3

    def test_to_dict(self):
        change_set = ChangeSet(changed=[ProjectState("c", "4", previous_revision="3")])
        assert change_set.to_dict() == {
            "added": [],
            "removed": [],
            "changed": [{"server_path": "c", "revision": "4", "previous_revision": "3"}],
        }
