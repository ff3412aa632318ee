"""Tests for enricher selection and the LOC analyzer."""

import os

import pytest

from config.scan_config import ScanConfig
from processing.enrichers import EnrichmentContext, build_enrichers
from processing.enrichers.loc import LocAnalyzer, count_code_lines, language_for
from processing.ignore_rules import IgnoreMatcher
from processing.models import ProjectRecord


def _context(root, config=None, matcher=None):
    matcher = matcher or IgnoreMatcher(global_patterns=["node_modules"])
    return EnrichmentContext(
        path=root,
        matcher=matcher,
        scope=matcher.root_scope(root, os.listdir(root)),
        config=config or ScanConfig(roots=(root,)),
    )


class TestBuildEnrichers:
    def test_none_variant(self):
        assert build_enrichers(ScanConfig(enrichers=())) == []

    def test_loc_only_does_not_need_vcs(self):
        enrichers = build_enrichers(ScanConfig(enrichers=("loc",), loc_max_file_bytes=10))
        assert [e.name for e in enrichers] == ["loc"]
        assert enrichers[0].max_file_bytes == 10

    def test_vcs_receives_cli_flag(self):
        pytest.importorskip("pygit2")
        enrichers = build_enrichers(ScanConfig(enrichers=("vcs", "loc"), vcs_cli_fallback=True))
        assert [e.name for e in enrichers] == ["vcs", "loc"]
        assert enrichers[0].use_cli_fallback is True


class TestCountCodeLines:
    def test_skips_blank_and_comment_lines(self):
        text = "# header\n\nimport os\n    # indented comment\nx = 1  # trailing\n"
        assert count_code_lines(text, ("#",)) == 2

    def test_slash_comments(self):
        text = "// comment\nfn main() {\n}\n"
        assert count_code_lines(text, ("//",)) == 2

    def test_language_lookup_is_case_insensitive(self, tmp_path):
        assert language_for(tmp_path / "Main.RS") == "Rust"
        assert language_for(tmp_path / "README.md") is None


class TestLocAnalyzer:
    def test_counts_per_language(self, make_tree):
        root = make_tree(
            {
                "app.py": "import os\n\n# c\nprint(os.name)\n",
                "web/index.ts": "// c\nconst a = 1;\nexport default a;\n",
                "web/node_modules/dep/index.js": "module.exports = 1;\n" * 50,
                "README.md": "# Title\ntext\n",
            }
        )
        record = ProjectRecord(name="root", path=str(root))

        LocAnalyzer().enrich(record, _context(root))

        assert record.loc_by_language == {"Python": 2, "TypeScript": 2}
        assert record.loc == 4

    def test_skips_files_above_limit(self, make_tree):
        root = make_tree({"small.go": "package main\n", "big.go": "x := 1\n" * 100})
        record = ProjectRecord(name="root", path=str(root))

        LocAnalyzer(max_file_bytes=50).enrich(record, _context(root))

        assert record.loc == 1

    def test_project_without_sources_has_zero_loc(self, make_tree):
        root = make_tree({"notes.txt": "hello\n"})
        record = ProjectRecord(name="root", path=str(root))

        LocAnalyzer().enrich(record, _context(root))

        assert record.loc == 0
        assert record.loc_by_language == {}
