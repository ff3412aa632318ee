"""Tests for the concurrent project scanner."""

import os
import threading
from pathlib import Path
from typing import List

import pytest

from config.scan_config import SizeMode
from database.catalog import CatalogError
from processing.enrichers import Enricher
from processing.scanner import ScanOptions, Scanner


class SpyScanner(Scanner):
    """Records every directory listing the scan performs."""

    def __init__(self, *args, deny=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.listed: List[Path] = []
        self.deny = {Path(p) for p in deny}
        self._spy_lock = threading.Lock()

    def _read_entries(self, directory):
        with self._spy_lock:
            self.listed.append(directory)
        if directory in self.deny:
            raise PermissionError(13, "Permission denied", str(directory))
        return super()._read_entries(directory)


def _paths(catalog):
    page = catalog.query(sort_key="name", direction="asc", page_size=1000)
    return [item.path for item in page.items]


class TestPruning:
    def test_vendor_project_is_never_visited(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                "p1/Cargo.toml": "[package]\n",
                "p1/vendor/p2/Cargo.toml": "[package]\n",
            }
        ).resolve()
        config = scan_config_for(root, global_ignores=("vendor",))
        scanner = SpyScanner(config, catalog=catalog)

        report = scanner.scan()

        assert report.count == 1
        assert _paths(catalog) == [str(root / "p1")]
        assert root / "p1" / "vendor" / "p2" not in scanner.listed

    def test_ignored_directory_is_not_listed_even_with_nested_discovery(
        self, make_tree, scan_config_for, catalog
    ):
        root = make_tree(
            {
                "p1/Cargo.toml": "[package]\n",
                "p1/vendor/p2/Cargo.toml": "[package]\n",
                "p1/crates/p3/Cargo.toml": "[package]\n",
            }
        ).resolve()
        config = scan_config_for(root, global_ignores=("vendor",), descend_into_projects=True)
        scanner = SpyScanner(config, catalog=catalog)

        scanner.scan()

        assert _paths(catalog) == [str(root / "p1"), str(root / "p1" / "crates" / "p3")]
        listed = set(scanner.listed)
        assert root / "p1" / "vendor" not in listed
        assert root / "p1" / "vendor" / "p2" not in listed

    def test_gitignored_directory_is_pruned(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                ".gitignore": "archive/\n",
                "archive/old/package.json": "{}",
                "live/package.json": "{}",
            }
        ).resolve()
        scanner = SpyScanner(scan_config_for(root), catalog=catalog)

        scanner.scan()

        assert _paths(catalog) == [str(root / "live")]
        assert root / "archive" not in scanner.listed

    def test_hidden_directories_are_not_descended(self, make_tree, scan_config_for, catalog):
        root = make_tree({".config/tool/package.json": "{}", "app/go.mod": "module app\n"}).resolve()

        report = Scanner(scan_config_for(root), catalog=catalog).scan()

        assert report.count == 1
        assert _paths(catalog) == [str(root / "app")]


class TestNestedPolicy:
    def test_project_root_is_a_leaf_by_default(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                "mono/package.json": "{}",
                "mono/packages/ui/package.json": "{}",
            }
        ).resolve()
        scanner = SpyScanner(scan_config_for(root), catalog=catalog)

        report = scanner.scan()

        assert report.count == 1
        assert root / "mono" / "packages" not in scanner.listed

    def test_nested_discovery_when_enabled(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                "mono/package.json": "{}",
                "mono/packages/ui/package.json": "{}",
            }
        ).resolve()

        report = Scanner(scan_config_for(root, descend_into_projects=True), catalog=catalog).scan()

        assert report.count == 2

    def test_scan_root_can_itself_be_a_project(self, make_tree, scan_config_for, catalog):
        root = make_tree({"pyproject.toml": "[project]\n"}).resolve()

        Scanner(scan_config_for(root), catalog=catalog).scan()

        row = catalog.get(root)
        assert row is not None
        assert row.project_type == "python"


class TestRecords:
    def test_git_only_directory_is_catalogued_without_type(self, make_tree, scan_config_for, catalog):
        root = make_tree({"notes/.git/": "", "notes/todo.md": "- [ ] x\n"}).resolve()

        Scanner(scan_config_for(root), catalog=catalog).scan()

        row = catalog.get(root / "notes")
        assert row.project_type is None
        assert row.is_git_repo is True

    def test_metrics_are_recorded(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                "web/package.json": "{}",
                "web/index.js": "console.log(1)\n",
                "web/node_modules/left-pad/index.js": "x" * 500,
            }
        ).resolve()

        Scanner(scan_config_for(root), catalog=catalog).scan()

        row = catalog.get(root / "web")
        assert row.files_count == 2
        assert row.size_bytes == 2 + len("console.log(1)\n")
        assert row.last_edited_at is not None
        assert row.loc is None

    def test_size_mode_none(self, make_tree, scan_config_for, catalog):
        root = make_tree({"web/package.json": "{}"}).resolve()

        Scanner(scan_config_for(root, size_mode=SizeMode.NONE), catalog=catalog).scan()

        assert catalog.get(root / "web").size_bytes is None

    def test_loc_enricher_populates_loc(self, make_tree, scan_config_for, catalog):
        root = make_tree({"svc/go.mod": "module svc\n", "svc/main.go": "package main\n\nfunc main() {}\n"}).resolve()

        Scanner(scan_config_for(root, enrichers=("loc",)), catalog=catalog).scan()

        row = catalog.get(root / "svc")
        assert row.loc == 2
        assert row.loc_by_language == {"Go": 2}


class TestDryRun:
    def test_dry_run_writes_nothing_and_matches_real_count(self, make_tree, scan_config_for, catalog):
        root = make_tree(
            {
                "a/Cargo.toml": "",
                "b/package.json": "{}",
                "c/d/go.mod": "module d\n",
                "plain/readme.txt": "",
            }
        ).resolve()
        config = scan_config_for(root)

        dry = Scanner(config, catalog=catalog).scan(ScanOptions(dry_run=True))
        assert catalog.count() == 0
        assert dry.dry_run is True

        real = Scanner(config, catalog=catalog).scan()
        assert dry.count == real.count == catalog.count() == 3
        assert sorted(p.path for p in dry.projects) == sorted(p.path for p in real.projects)

    def test_dry_run_needs_no_catalog(self, make_tree, scan_config_for):
        root = make_tree({"a/Cargo.toml": ""}).resolve()

        report = Scanner(scan_config_for(root)).scan(ScanOptions(dry_run=True))

        assert report.count == 1

    def test_real_scan_requires_catalog(self, make_tree, scan_config_for):
        root = make_tree({}).resolve()

        with pytest.raises(ValueError):
            Scanner(scan_config_for(root)).scan()


class TestSoftFailures:
    def test_missing_root_is_a_warning(self, make_tree, scan_config_for, catalog, tmp_path):
        root = make_tree({"a/Cargo.toml": ""}).resolve()
        missing = tmp_path / "does-not-exist"

        report = Scanner(scan_config_for(missing, root), catalog=catalog).scan()

        assert report.count == 1
        assert [(w.kind, w.subject) for w in report.warnings] == [("root_missing", str(missing))]

    def test_unreadable_subtree_is_skipped(self, make_tree, scan_config_for, catalog, tmp_path):
        first = make_tree({"locked/app/Cargo.toml": "", "open/app/Cargo.toml": ""}, name="first").resolve()
        second = make_tree({"svc/go.mod": "module svc\n"}, name="second").resolve()
        scanner = SpyScanner(
            scan_config_for(first, second), catalog=catalog, deny=[first / "locked"]
        )

        report = scanner.scan()

        assert sorted(_paths(catalog)) == sorted(
            [str(first / "open" / "app"), str(second / "svc")]
        )
        assert [(w.kind, w.subject) for w in report.warnings] == [("io", str(first / "locked"))]
        assert "Permission" in report.warnings[0].message

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="permission bits are not enforced for root",
    )
    def test_permission_denied_directory_on_disk(self, make_tree, scan_config_for, catalog):
        root = make_tree({"locked/app/Cargo.toml": "", "open/app/Cargo.toml": ""}).resolve()
        locked = root / "locked"
        locked.chmod(0)
        try:
            report = Scanner(scan_config_for(root), catalog=catalog).scan()
        finally:
            locked.chmod(0o755)

        assert _paths(catalog) == [str(root / "open" / "app")]
        assert [w.kind for w in report.warnings] == ["io"]

    def test_failing_enricher_leaves_fields_absent(self, make_tree, scan_config_for, catalog):
        class BrokenEnricher(Enricher):
            name = "broken"

            def enrich(self, record, context):
                raise RuntimeError("analysis crashed")

        root = make_tree({"a/Cargo.toml": ""}).resolve()
        scanner = Scanner(scan_config_for(root), catalog=catalog, enrichers=[BrokenEnricher()])

        report = scanner.scan()

        assert report.count == 1
        assert [w.kind for w in report.warnings] == ["enrichment"]
        row = catalog.get(root / "a")
        assert row.loc is None
        assert row.git is None

    def test_catalog_failure_aborts_scan(self, make_tree, scan_config_for):
        class BrokenCatalog:
            def upsert(self, record):
                raise CatalogError("disk full")

        root = make_tree({"a/Cargo.toml": ""}).resolve()

        with pytest.raises(CatalogError):
            Scanner(scan_config_for(root), catalog=BrokenCatalog()).scan()


class TestIdempotence:
    def test_rescan_preserves_ids_and_fields(self, make_tree, scan_config_for, catalog):
        layout = {f"proj{i}/package.json": "{}" for i in range(12)}
        layout["proj3/.git/"] = ""
        root = make_tree(layout).resolve()
        config = scan_config_for(root)

        Scanner(config, catalog=catalog).scan()
        first = catalog.query(sort_key="name", direction="asc", page_size=100).items
        Scanner(config, catalog=catalog).scan()
        second = catalog.query(sort_key="name", direction="asc", page_size=100).items

        assert len(first) == 12
        assert first == second


class TestConcurrencyAndControl:
    def test_many_projects_with_small_pool(self, make_tree, scan_config_for, catalog, mock_progress_callback):
        layout = {f"group{g}/proj{i}/Cargo.toml": "" for g in range(5) for i in range(8)}
        root = make_tree(layout).resolve()
        config = scan_config_for(root, concurrency=2)

        report = Scanner(config, catalog=catalog).scan(
            ScanOptions(progress_callback=mock_progress_callback)
        )

        assert report.count == 40
        assert catalog.count() == 40
        assert mock_progress_callback.call_count == 40
        counts = sorted(call.args[1] for call in mock_progress_callback.call_args_list)
        assert counts == list(range(1, 41))

    def test_cancel_event_stops_scan(self, make_tree, scan_config_for, catalog):
        layout = {f"group{g}/proj{i}/Cargo.toml": "" for g in range(5) for i in range(5)}
        root = make_tree(layout).resolve()
        cancel = threading.Event()
        cancel.set()

        report = Scanner(scan_config_for(root), catalog=catalog).scan(ScanOptions(cancel_event=cancel))

        assert report.cancelled is True
        assert "cancelled" in [w.kind for w in report.warnings]
        assert report.count < 25
        assert catalog.count() == report.count

    def test_zero_timeout_stops_scan(self, make_tree, scan_config_for, catalog):
        root = make_tree({f"g/p{i}/Cargo.toml": "" for i in range(5)}).resolve()

        report = Scanner(scan_config_for(root), catalog=catalog).scan(ScanOptions(timeout=0))

        assert report.cancelled is True
        assert report.count == 0

    def test_roots_override(self, make_tree, scan_config_for, catalog):
        configured = make_tree({"a/Cargo.toml": ""}, name="configured").resolve()
        other = make_tree({"b/Cargo.toml": ""}, name="other").resolve()

        Scanner(scan_config_for(configured), catalog=catalog).scan(ScanOptions(roots=[other]))

        assert _paths(catalog) == [str(other / "b")]

    def test_report_contains_timings(self, make_tree, scan_config_for, catalog):
        root = make_tree({"a/Cargo.toml": ""}).resolve()

        report = Scanner(scan_config_for(root), catalog=catalog).scan()

        assert {"walk", "metrics", "upsert"} <= set(report.timings)
        assert report.directories_visited == 2
        assert report.to_dict()["count"] == 1
