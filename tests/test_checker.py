"""Tests for the MetadataChecker invalidation orchestrator."""

import os
from pathlib import Path
from textwrap import dedent
from unittest.mock import Mock

import pytest

from metacheck.cache.snapshot_store import SnapshotStore
from metacheck.checker import CheckState, MetadataChecker, PrecheckResult
from metacheck.config.checker_config import CheckerConfig, ExtractorConfig, StorageConfig
from metacheck.factories import DefaultComponentFactory
from metacheck.hashing import shapes_hash
from metacheck.indexer.class_indexer import ClassIndexer
from metacheck.interfaces.collaborators import IArtifactCache, IEntityIndexer


SOURCE_A = dedent("""
    from metacheck.markers import service

    @service()
    class A:
        # first comment
        def run(self):
            return 1
""")

SOURCE_B = dedent("""
    from metacheck.markers import excluded

    @excluded
    class B:
        pass
""")


def write(path: Path, text: str) -> None:
    """Write a file and push its mtime forward so the change is always visible."""
    existed = path.exists()
    before = path.stat().st_mtime_ns if existed else 0
    path.write_text(text)
    bumped = max(path.stat().st_mtime_ns, before + 1_000_000_000)
    os.utime(path, ns=(bumped, bumped))


@pytest.fixture
def app_root(tmp_path):
    root = tmp_path / "app"
    root.mkdir()
    write(root / "A.py", SOURCE_A)
    write(root / "B.py", SOURCE_B)
    return root


@pytest.fixture
def config(tmp_path):
    return CheckerConfig(
        storage=StorageConfig(
            cache_dir=tmp_path / "temp" / "service-discovery",
            artifact_dir=tmp_path / "temp" / "cache",
        ),
        scan_workers=1,
    )


@pytest.fixture
def checker_parts(config):
    factory = DefaultComponentFactory()
    cache = factory.create_index_cache(config.storage)
    checker = factory.create_checker(config, cache)
    yield checker, cache
    cache.close()


@pytest.fixture
def checker(checker_parts):
    return checker_parts[0]


@pytest.fixture
def roots(app_root):
    return [str(app_root)]


@pytest.fixture
def committed(checker, roots):
    """A checker whose first build has been compiled and committed."""
    result = checker.precheck(roots)
    checker.commit(result)
    return checker


def make_artifact(config: CheckerConfig) -> Path:
    config.storage.artifact_dir.mkdir(parents=True, exist_ok=True)
    compiled = config.storage.artifact_dir / "Container.py"
    compiled.write_text("# compiled")
    return compiled


class TestPrecheckStates:
    """One test per terminal state of the precheck."""

    def test_unversioned_without_snapshot(self, checker, roots, config):
        """No snapshot means rebuild and discard the artifact."""
        compiled = make_artifact(config)

        result = checker.precheck(roots)

        assert result.state == CheckState.UNVERSIONED
        assert result.must_rebuild
        assert result.fingerprint is not None
        assert not compiled.exists()

    def test_unversioned_when_roots_differ(self, committed, tmp_path, roots):
        """A snapshot for another root list does not count."""
        other = tmp_path / "lib"
        other.mkdir()

        result = committed.precheck(roots + [str(other)])

        assert result.state == CheckState.UNVERSIONED

    def test_unversioned_when_root_order_differs(self, checker, tmp_path, app_root):
        other = tmp_path / "lib"
        other.mkdir()
        checker.commit(checker.precheck([str(app_root), str(other)]))

        result = checker.precheck([str(other), str(app_root)])

        assert result.state == CheckState.UNVERSIONED

    def test_unindexed_when_index_is_empty(self, committed, roots, checker_parts):
        """An empty index is indistinguishable from one never built."""
        _, cache = checker_parts
        ClassIndexer(cache).clear(roots)

        result = committed.precheck(roots)

        assert result.state == CheckState.UNINDEXED
        assert result.must_rebuild

    def test_fast_clean_after_commit(self, committed, roots, config):
        compiled = make_artifact(config)

        result = committed.precheck(roots)

        assert result.state == CheckState.FAST_CLEAN
        assert result.is_valid
        assert result.fingerprint is None
        assert result.changed_paths == ()
        assert compiled.exists()

    def test_structurally_deleted(self, committed, roots, app_root, config):
        compiled = make_artifact(config)
        (app_root / "B.py").unlink()

        result = committed.precheck(roots)

        assert result.state == CheckState.STRUCTURALLY_DELETED
        assert result.must_rebuild
        assert str(app_root / "B.py") in result.changed_paths
        assert not compiled.exists()

    def test_deleted_subdirectory(self, checker, roots, app_root):
        package = app_root / "services"
        package.mkdir()
        write(package / "mailer.py", "class Mailer:\n    pass\n")
        checker.commit(checker.precheck(roots))

        (package / "mailer.py").unlink()
        package.rmdir()

        assert checker.precheck(roots).state == CheckState.STRUCTURALLY_DELETED

    def test_missing_root_after_commit(self, checker, tmp_path, app_root):
        lib = tmp_path / "lib"
        lib.mkdir()
        roots = [str(app_root), str(lib)]
        checker.commit(checker.precheck(roots))

        lib.rmdir()

        assert checker.precheck(roots).state == CheckState.STRUCTURALLY_DELETED

    def test_precise_clean_on_comment_edit(self, committed, roots, app_root):
        write(app_root / "A.py", SOURCE_A.replace("first comment", "second comment"))

        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_CLEAN
        assert result.is_valid
        assert result.fingerprint is None
        assert result.changed_paths == (str(app_root / "A.py"),)

    def test_precise_dirty_on_decorator_change(self, committed, roots, app_root):
        write(app_root / "A.py", SOURCE_A.replace("@service()", "@service(lazy=False)"))

        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_DIRTY
        assert result.must_rebuild
        assert result.fingerprint is not None


class TestTestableProperties:
    """Safety and idempotence properties of the check."""

    def test_idempotence_after_commit(self, checker, roots):
        first = checker.precheck(roots)
        assert first.must_rebuild
        checker.commit(first)

        assert checker.precheck(roots).state == CheckState.FAST_CLEAN
        assert checker.precheck(roots).state == CheckState.FAST_CLEAN

    def test_fast_path_never_extracts(self, config, roots):
        """With no mtime diff the extractor factory is never invoked."""
        factory = DefaultComponentFactory()
        cache = factory.create_index_cache(config.storage)
        try:
            real = factory.create_checker(config, cache)
            real.commit(real.precheck(roots))

            extractor_factory = Mock()
            checker = MetadataChecker(
                store=factory.create_store(config.storage),
                indexer=factory.create_indexer(config, cache),
                extractor_factory=extractor_factory,
                artifact=factory.create_artifact(config.storage),
            )

            result = checker.precheck(roots)
        finally:
            cache.close()

        assert result.state == CheckState.FAST_CLEAN
        extractor_factory.assert_not_called()

    def test_new_file_before_indexing(self, committed, roots, app_root):
        """A source file the index has not seen forces a rebuild."""
        write(app_root / "C.py", "class C:\n    pass\n")

        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_DIRTY
        assert str(app_root / "C.py") in result.changed_paths

    def test_new_file_in_subdirectory_before_indexing(self, committed, roots, app_root):
        package = app_root / "handlers"
        package.mkdir()
        write(package / "orders.py", "class OrderHandler:\n    pass\n")

        assert committed.precheck(roots).state == CheckState.PRECISE_DIRTY

    def test_untouched_entity_shielding(self, config, roots, app_root):
        """Only the touched entity is re-extracted; B keeps its saved shape."""
        factory = DefaultComponentFactory()
        cache = factory.create_index_cache(config.storage)
        try:
            real = factory.create_checker(config, cache)
            real.commit(real.precheck(roots))

            built = []
            build_real = factory.create_extractor_factory(config.extractor)

            def spying_factory(index):
                extractor = build_real(index)
                spy = Mock(wraps=extractor)
                built.append(spy)
                return spy

            checker = MetadataChecker(
                store=factory.create_store(config.storage),
                indexer=factory.create_indexer(config, cache),
                extractor_factory=spying_factory,
                artifact=factory.create_artifact(config.storage),
            )
            write(app_root / "A.py", SOURCE_A.replace("return 1", "return 2"))

            result = checker.precheck(roots)
        finally:
            cache.close()

        assert result.state == CheckState.PRECISE_CLEAN
        assert len(built) == 1
        built[0].shape_of.assert_called_once_with("A.A")

    def test_class_renamed_in_place_is_a_change(self, committed, roots, app_root):
        """The stale index still points at A.A, which no longer resolves."""
        write(app_root / "A.py", SOURCE_A.replace("class A:", "class Renamed:"))

        assert committed.precheck(roots).state == CheckState.PRECISE_DIRTY

    def test_non_source_file_only_touches_directory(self, committed, roots, app_root):
        """A README changes the directory mtime but no entity."""
        (app_root / "README.md").write_text("docs")
        os.utime(app_root, ns=(1, 1))

        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_CLEAN
        assert result.changed_paths == (str(app_root),)

    def test_undecorated_class_gaining_marker_is_a_change(self, committed, roots, app_root):
        write(app_root / "plain.py", "class Plain:\n    pass\n")
        result = committed.precheck(roots)
        committed.commit(result)

        write(app_root / "plain.py", "from metacheck.markers import excluded\n\n@excluded\nclass Plain:\n    pass\n")

        assert committed.precheck(roots).state == CheckState.PRECISE_DIRTY

    def test_class_added_to_indexed_file_is_a_change(self, committed, roots, app_root):
        """The index only knows A.A for A.py; a second class there is not indexed yet."""
        write(app_root / "A.py", SOURCE_A + "\n@service()\nclass C:\n    pass\n")

        first = committed.precheck(roots)
        second = committed.precheck(roots)

        assert first.state == CheckState.PRECISE_DIRTY
        assert first.changed_paths == (str(app_root / "A.py"),)
        assert second.must_rebuild

        committed.commit(second)
        assert committed.precheck(roots).state == CheckState.FAST_CLEAN

    def test_module_without_classes_edit_is_clean(self, checker, roots, app_root):
        write(app_root / "helpers.py", "def helper():\n    return 1\n")
        checker.commit(checker.precheck(roots))

        write(app_root / "helpers.py", "def helper():\n    return 2\n")

        assert checker.precheck(roots).state == CheckState.PRECISE_CLEAN

    def test_module_without_classes_gaining_one_is_a_change(self, checker, roots, app_root):
        write(app_root / "helpers.py", "def helper():\n    return 1\n")
        checker.commit(checker.precheck(roots))

        write(app_root / "helpers.py", "class Helper:\n    pass\n")

        assert checker.precheck(roots).state == CheckState.PRECISE_DIRTY

    def test_unreadable_source_is_a_change(self, committed, roots, app_root):
        write(app_root / "B.py", "class B(:\n")

        assert committed.precheck(roots).state == CheckState.PRECISE_DIRTY


class TestControllerAncestry:
    """Controller shapes depend on base classes declared in other files."""

    BASE = "from web import Controller\n\nclass BaseController(Controller):\n    pass\n"
    USER = dedent("""
        from web import get
        from base import BaseController

        class UserController(BaseController):
            @get
            def show(self, repo: Repo):
                pass
    """)

    @pytest.fixture
    def controller_checker(self, tmp_path, app_root):
        config = CheckerConfig(
            storage=StorageConfig(
                cache_dir=tmp_path / "temp" / "service-discovery",
                artifact_dir=tmp_path / "temp" / "cache",
            ),
            extractor=ExtractorConfig(controller_base="Controller", http_markers=("get",)),
            scan_workers=1,
        )
        write(app_root / "base.py", self.BASE)
        write(app_root / "user.py", self.USER)
        factory = DefaultComponentFactory()
        cache = factory.create_index_cache(config.storage)
        checker = factory.create_checker(config, cache)
        checker.commit(checker.precheck([str(app_root)]))
        yield checker
        cache.close()

    def test_base_dropping_controller_is_a_change(self, controller_checker, roots, app_root):
        write(app_root / "base.py", "class BaseController:\n    pass\n")

        result = controller_checker.precheck(roots)

        assert result.state == CheckState.PRECISE_DIRTY
        assert result.changed_paths == (str(app_root / "base.py"),)

    def test_base_becoming_controller_is_a_change(self, controller_checker, roots, app_root):
        write(app_root / "base.py", "class BaseController:\n    pass\n")
        controller_checker.commit(controller_checker.precheck(roots))

        write(app_root / "base.py", self.BASE)

        assert controller_checker.precheck(roots).state == CheckState.PRECISE_DIRTY

    def test_base_comment_edit_is_clean(self, controller_checker, roots, app_root):
        write(app_root / "base.py", "# base\n" + self.BASE)

        assert controller_checker.precheck(roots).state == CheckState.PRECISE_CLEAN

    def test_subclass_shape_recorded_at_commit(self, controller_checker, roots, config):
        snapshot = SnapshotStore(config.storage.meta_path).load()

        assert snapshot.entity_shapes["user.UserController"] == {
            "controller": True,
            "methods": {"show": {"attrs": ["get"], "params": ["Repo"]}},
        }
        assert snapshot.entity_shapes["base.BaseController"] == {"controller": True}


class TestConcreteScenario:
    """Comment edit keeps the hash; a facet change moves it."""

    def test_comment_then_facet_change(self, committed, roots, app_root, config):
        store = SnapshotStore(config.storage.meta_path)
        saved = store.load()
        assert saved.entity_shapes == {
            "A.A": {"class": ["service()"]},
            "B.B": {"class": ["excluded"]},
        }
        original_hash = saved.shapes_hash

        write(app_root / "A.py", SOURCE_A.replace("# first comment", "# edited comment"))
        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_CLEAN
        assert result.changed_paths == (str(app_root / "A.py"),)
        assert store.load().shapes_hash == original_hash

        write(app_root / "A.py", SOURCE_A.replace("@service()", "@as_event_listener"))
        result = committed.precheck(roots)

        assert result.state == CheckState.PRECISE_DIRTY
        assert result.fingerprint is not None

        snapshot = committed.commit(result)
        assert snapshot.mtime_hash == result.fingerprint
        assert snapshot.entity_shapes["A.A"] == {"class": ["as_event_listener"]}
        assert snapshot.shapes_hash != original_hash


class TestPreciseCleanRefresh:
    """Stored mtimes after a precise clean verdict."""

    def test_refresh_makes_next_check_fast(self, committed, roots, app_root):
        write(app_root / "A.py", SOURCE_A.replace("first comment", "other"))

        assert committed.precheck(roots).state == CheckState.PRECISE_CLEAN
        assert committed.precheck(roots).state == CheckState.FAST_CLEAN

    def test_refresh_keeps_fingerprint(self, committed, roots, app_root, config):
        store = SnapshotStore(config.storage.meta_path)
        before = store.load()
        write(app_root / "A.py", SOURCE_A.replace("first comment", "other"))

        committed.precheck(roots)
        after = store.load()

        assert after.mtime_hash == before.mtime_hash
        assert after.shapes_hash == before.shapes_hash
        assert after.mtimes != before.mtimes

    def test_without_refresh_path_reappears(self, tmp_path, roots, app_root):
        config = CheckerConfig(
            storage=StorageConfig(
                cache_dir=tmp_path / "temp" / "service-discovery",
                artifact_dir=tmp_path / "temp" / "cache",
            ),
            refresh_mtimes_on_clean=False,
        )
        factory = DefaultComponentFactory()
        cache = factory.create_index_cache(config.storage)
        try:
            checker = factory.create_checker(config, cache)
            checker.commit(checker.precheck(roots))
            write(app_root / "A.py", SOURCE_A.replace("first comment", "other"))

            assert checker.precheck(roots).state == CheckState.PRECISE_CLEAN
            assert checker.precheck(roots).state == CheckState.PRECISE_CLEAN
        finally:
            cache.close()


class TestCommit:
    """Tests for persisting snapshots after compilation."""

    def test_commit_uses_result_fingerprint(self, checker, roots):
        result = checker.precheck(roots)

        snapshot = checker.commit(result)

        assert snapshot.mtime_hash == result.fingerprint
        assert snapshot.roots == roots

    def test_commit_without_fingerprint_computes_one(self, checker, roots):
        result = PrecheckResult(state=CheckState.PRECISE_DIRTY, roots=tuple(roots))

        snapshot = checker.commit(result)

        assert snapshot.mtime_hash == checker.compute_mtime_hash(roots)

    def test_compute_shape_snapshot(self, checker, roots, app_root):
        indexed = {"A.A": str(app_root / "A.py"), "B.B": str(app_root / "B.py"), "Gone.X": "/nowhere.py"}

        shapes, digest = checker.compute_shape_snapshot(indexed)

        assert list(shapes) == ["A.A", "B.B"]
        assert digest == shapes_hash(shapes)


class TestCollaboratorDoubles:
    """Orchestration against mocked collaborators."""

    def test_empty_index_never_extracts(self, tmp_path):
        root = str(tmp_path / "app")
        store = Mock()
        store.load.return_value = Mock(roots=[root])
        indexer = Mock(spec=IEntityIndexer)
        indexer.indexed_entities.return_value = {}
        artifact = Mock(spec=IArtifactCache)
        extractor_factory = Mock()

        checker = MetadataChecker(store, indexer, extractor_factory, artifact)
        result = checker.precheck([root])

        assert result.state == CheckState.UNINDEXED
        assert result.fingerprint is not None
        artifact.invalidate.assert_called_once()
        extractor_factory.assert_not_called()

    def test_result_to_dict(self):
        result = PrecheckResult(
            state=CheckState.PRECISE_DIRTY,
            roots=("/app",),
            fingerprint="abc",
            changed_paths=("/app/A.py",),
        )

        assert result.to_dict() == {
            "valid": False,
            "state": "precise_dirty",
            "roots": ["/app"],
            "fingerprint": "abc",
            "changed_paths": ["/app/A.py"],
        }
