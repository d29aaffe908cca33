"""Tests for multi-signal context ranking."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from palace.config.models import ContextConfig
from palace.index._internal.db import Database
from palace.index._internal.ranking import (
    FileEditInfo,
    SeedFile,
    SmartContextOptions,
    compute_smart_context,
    dependency_score,
    quick_score_files,
    recency_score,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
WEEK = timedelta(days=7)


class TestDependencyScore:
    """Tests for dependency_score."""

    @pytest.mark.parametrize(
        ("depth", "expected"),
        [(0, 1.0), (1, 0.7), (2, 0.4), (3, 0.1), (6, 0.1)],
    )
    def test_decay(self, depth: int, expected: float) -> None:
        """Seeds score 1.0, decaying 0.3 per level down to 0.1."""
        assert dependency_score(depth) == pytest.approx(expected)


class TestRecencyScore:
    """Tests for recency_score."""

    def test_never_edited(self) -> None:
        assert recency_score(None, NOW, WEEK) == 0.0

    def test_linear_decay(self) -> None:
        """Just edited is 1.0, half a window ago is 0.5."""
        assert recency_score(NOW, NOW, WEEK) == pytest.approx(1.0)
        assert recency_score(NOW - WEEK / 2, NOW, WEEK) == pytest.approx(0.5)

    def test_outside_window(self) -> None:
        assert recency_score(NOW - timedelta(days=8), NOW, WEEK) == 0.0

    def test_naive_timestamps_are_utc(self) -> None:
        """Naive datetimes are read as UTC."""
        naive = (NOW - timedelta(days=1)).replace(tzinfo=None)
        assert recency_score(naive, NOW, WEEK) == pytest.approx(1 - 1 / 7)

    def test_empty_window(self) -> None:
        assert recency_score(NOW, NOW, timedelta(0)) == 0.0


class TestSmartContextOptions:
    """Tests for SmartContextOptions."""

    def test_from_config(self) -> None:
        """Weights, window and cap come from the context section."""
        config = ContextConfig(
            relevance_weight=0.7, usage_weight=0.1, max_files=5, recency_window_days=3
        )
        opts = SmartContextOptions.from_config(config)
        assert (opts.relevance_weight, opts.usage_weight) == (0.7, 0.1)
        assert opts.max_files == 5
        assert opts.recent_edit_window == timedelta(days=3)

    def test_describe(self) -> None:
        """The description lists enabled features."""
        assert SmartContextOptions().describe() == (
            "enabled: dependency-expansion, usage-prioritization, recency-boost"
        )
        basic = SmartContextOptions(
            expand_dependencies=False, prioritize_by_usage=False, boost_recent_edits=False
        )
        assert basic.describe() == "basic (no smart features)"


class TestComputeSmartContext:
    """Tests for compute_smart_context."""

    def test_relevance_and_dependency_only(self, call_graph_db: Database) -> None:
        """Expanded files get half relevance and decayed dependency."""
        opts = SmartContextOptions(
            relevance_weight=0.9, usage_weight=0.0, recency_weight=0.0, dependency_weight=0.1
        )
        result = compute_smart_context(
            call_graph_db, [SeedFile("app.py", 1.0)], options=opts, now=NOW
        )

        assert [(s.path, round(s.final_score, 6)) for s in result.files] == [
            ("app.py", 1.0),
            ("service.py", 0.52),
        ]
        service = result.files[1]
        assert (service.relevance_score, service.dependency_score) == (0.5, pytest.approx(0.7))
        assert result.expanded_from == ["app.py"]

    def test_usage_and_recency_can_outrank_seed(self, call_graph_db: Database) -> None:
        """A busy, recently edited dependency can rank above the seed."""
        history = {"service.py": FileEditInfo("service.py", 3, NOW - timedelta(days=1))}
        result = compute_smart_context(
            call_graph_db, [SeedFile("app.py", 1.0)], history, now=NOW
        )

        service, app = result.files
        assert service.path == "service.py"
        assert service.usage_score == pytest.approx(1.0)
        assert service.recency_score == pytest.approx(1 - 1 / 7)
        assert app.usage_score == pytest.approx(1.5 / 7.7)
        assert app.recency_score == 0.0
        assert service.final_score == pytest.approx(0.2 + 0.3 + 0.2 * (6 / 7) + 0.07)

    def test_stats(self, call_graph_db: Database) -> None:
        result = compute_smart_context(call_graph_db, [SeedFile("app.py", 1.0)], now=NOW)
        stats = result.stats
        assert (stats.seed_files, stats.expanded_files, stats.total_files) == (1, 1, 2)
        assert stats.max_score == pytest.approx(result.files[0].final_score)
        assert stats.avg_score == pytest.approx(
            sum(f.final_score for f in result.files) / 2
        )

    def test_basic_mode_keeps_seeds_only(self, call_graph_db: Database) -> None:
        """With every feature off only seeds are scored."""
        opts = SmartContextOptions(
            expand_dependencies=False, prioritize_by_usage=False, boost_recent_edits=False
        )
        result = compute_smart_context(
            call_graph_db,
            [SeedFile("util.py", 0.5), SeedFile("app.py", 1.0)],
            options=opts,
            now=NOW,
        )
        assert [(s.path, s.final_score) for s in result.files] == [
            ("app.py", pytest.approx(0.5)),
            ("util.py", pytest.approx(0.3)),
        ]
        assert result.options == "basic (no smart features)"

    def test_max_files(self, call_graph_db: Database) -> None:
        """The ranked list is capped."""
        result = compute_smart_context(
            call_graph_db,
            [SeedFile("app.py", 1.0)],
            options=SmartContextOptions(max_files=1),
            now=NOW,
        )
        assert len(result.files) == 1
        assert result.stats.total_files == 1

    def test_no_seeds(self, call_graph_db: Database) -> None:
        result = compute_smart_context(call_graph_db, [], now=NOW)
        assert result.files == []
        assert result.stats.avg_score == 0.0


class TestQuickScore:
    """Tests for quick_score_files."""

    def test_usage_and_recency_blend(self, call_graph_db: Database) -> None:
        """Relevance is fixed; usage and recency decide the order."""
        history = {"app.py": FileEditInfo("app.py", 1, NOW)}
        scores = quick_score_files(call_graph_db, ["app.py", "service.py"], history, now=NOW)
        by_path = {s.path: s for s in scores}

        assert by_path["service.py"].final_score == pytest.approx(0.3 + 0.4)
        assert by_path["app.py"].final_score == pytest.approx(0.3 + 0.4 * 1.5 / 7.7 + 0.3)
        assert [s.path for s in scores] == ["service.py", "app.py"]
