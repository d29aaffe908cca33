"""Tests for configuration models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from palace.config.models import (
    ContextConfig,
    GraphConfig,
    IndexConfig,
    LogOutputConfig,
    PalaceConfig,
    ScannerConfig,
)


class TestDefaults:
    """Built-in defaults."""

    def test_root_defaults(self) -> None:
        config = PalaceConfig()
        assert config.logging.level == "INFO"
        assert config.logging.outputs[0].destination == "stderr"
        assert config.index.db_name == "palace.db"
        assert config.index.index_path is None
        assert config.scanner.workers == 0
        assert not config.scanner.enable_lsp
        assert config.guardrails.do_not_touch_globs == []

    def test_graph_limits(self) -> None:
        graph = GraphConfig()
        assert (graph.default_depth, graph.max_depth, graph.max_paths) == (3, 10, 100)
        assert (graph.expansion_depth, graph.expansion_max_files) == (2, 50)

    def test_context_weights_sum_to_one(self) -> None:
        context = ContextConfig()
        assert context.weight_sum == pytest.approx(1.0)
        assert context.max_tokens == 0
        assert context.recency_window_days == 7

    def test_chunk_limits(self) -> None:
        index = IndexConfig()
        assert (index.chunk_max_lines, index.chunk_max_bytes) == (120, 8192)


class TestValidators:
    """Field validation."""

    def test_negative_workers_rejected(self) -> None:
        with pytest.raises(ValidationError, match="workers must be >= 0"):
            ScannerConfig(workers=-1)

    def test_zero_workers_allowed(self) -> None:
        assert ScannerConfig(workers=0).workers == 0

    def test_negative_weight_rejected(self) -> None:
        with pytest.raises(ValidationError, match="non-negative"):
            ContextConfig(usage_weight=-0.1)

    def test_unnormalized_weights_allowed(self) -> None:
        """Weights need not sum to one."""
        context = ContextConfig(relevance_weight=1.0, usage_weight=1.0)
        assert context.weight_sum == pytest.approx(2.3)

    @pytest.mark.parametrize("destination", ["stderr", "stdout"])
    def test_console_destinations(self, destination: str) -> None:
        assert LogOutputConfig(destination=destination).destination == destination

    def test_absolute_file_destination(self, tmp_path: Path) -> None:
        path = tmp_path / "palace.log"
        assert LogOutputConfig(destination=str(path)).destination == str(path)

    def test_relative_file_destination_rejected(self) -> None:
        with pytest.raises(ValidationError, match="absolute path"):
            LogOutputConfig(destination="logs/palace.log")

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LogOutputConfig(level="LOUD")  # type: ignore[arg-type]
