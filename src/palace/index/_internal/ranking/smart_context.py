"""Multi-signal ranking of context files.

Each file carries four component scores in [0, 1]: relevance (from search),
usage (batch-normalized, see usage.py), recency (from edit history) and
dependency (closeness to a seed file). The final score is their weighted sum.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from palace.core.excludes import DEFAULT_EXCLUDE_PATTERNS
from palace.index._internal.graph.expand import ExpandOptions, expand_with_dependencies
from palace.index._internal.ranking.usage import get_file_usage_scores

if TYPE_CHECKING:
    from palace.config.models import ContextConfig
    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

SEED_DEPENDENCY_SCORE = 1.0
DEPENDENCY_DECAY_PER_DEPTH = 0.3
MIN_DEPENDENCY_SCORE = 0.1
EXPANDED_FILE_RELEVANCE = 0.5
DEFAULT_RECENCY_WINDOW = timedelta(days=7)
DEFAULT_MAX_FILES = 50

# Quick scoring blends relevance, usage and recency only
QUICK_RELEVANCE_WEIGHT = 0.3
QUICK_USAGE_WEIGHT = 0.4
QUICK_RECENCY_WEIGHT = 0.3


@dataclass(slots=True)
class ContextScore:
    path: str
    relevance_score: float = 0.0
    usage_score: float = 0.0
    recency_score: float = 0.0
    dependency_score: float = 0.0
    final_score: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "relevance_score": self.relevance_score,
            "usage_score": self.usage_score,
            "recency_score": self.recency_score,
            "dependency_score": self.dependency_score,
            "final_score": self.final_score,
        }


@dataclass(frozen=True, slots=True)
class SeedFile:
    """A file found by search, with its relevance in [0, 1]."""

    path: str
    relevance: float


@dataclass(frozen=True, slots=True)
class FileEditInfo:
    path: str
    edit_count: int = 0
    last_edited: datetime | None = None


@dataclass(slots=True)
class SmartContextOptions:
    """Which signals to blend and how.

    The four weights are expected to sum to 1.0; nothing enforces it.
    """

    expand_dependencies: bool = True
    dependency_depth: int = 1
    both_directions: bool = False
    prioritize_by_usage: bool = True
    boost_recent_edits: bool = True
    recent_edit_window: timedelta = DEFAULT_RECENCY_WINDOW
    relevance_weight: float = 0.4
    usage_weight: float = 0.3
    recency_weight: float = 0.2
    dependency_weight: float = 0.1
    max_files: int = DEFAULT_MAX_FILES

    @classmethod
    def from_config(cls, config: ContextConfig) -> SmartContextOptions:
        return cls(
            recent_edit_window=timedelta(days=config.recency_window_days),
            relevance_weight=config.relevance_weight,
            usage_weight=config.usage_weight,
            recency_weight=config.recency_weight,
            dependency_weight=config.dependency_weight,
            max_files=config.max_files,
        )

    def describe(self) -> str:
        enabled = [
            label
            for flag, label in (
                (self.expand_dependencies, "dependency-expansion"),
                (self.prioritize_by_usage, "usage-prioritization"),
                (self.boost_recent_edits, "recency-boost"),
            )
            if flag
        ]
        if not enabled:
            return "basic (no smart features)"
        return "enabled: " + ", ".join(enabled)


@dataclass(frozen=True, slots=True)
class SmartContextStats:
    seed_files: int = 0
    expanded_files: int = 0
    total_files: int = 0
    avg_score: float = 0.0
    max_score: float = 0.0


@dataclass(slots=True)
class SmartContextResult:
    files: list[ContextScore] = field(default_factory=list)
    expanded_from: list[str] = field(default_factory=list)
    options: str = ""
    stats: SmartContextStats = field(default_factory=SmartContextStats)


def dependency_score(depth: int) -> float:
    """1.0 for seeds, minus 0.3 per expansion level, floored at 0.1."""
    return max(SEED_DEPENDENCY_SCORE - depth * DEPENDENCY_DECAY_PER_DEPTH, MIN_DEPENDENCY_SCORE)


def recency_score(last_edited: datetime | None, now: datetime, window: timedelta) -> float:
    """Linear decay from 1.0 at ``now`` to 0.0 at the window edge."""
    if last_edited is None or window <= timedelta(0):
        return 0.0
    if last_edited.tzinfo is None:
        last_edited = last_edited.replace(tzinfo=UTC)
    age = now - last_edited
    if age > window:
        return 0.0
    return min(max(0.0, 1.0 - age / window), 1.0)


def _rank(scores: Sequence[ContextScore]) -> list[ContextScore]:
    return sorted(scores, key=lambda s: (-s.final_score, s.path))


def compute_smart_context(
    db: Database,
    seeds: Sequence[SeedFile],
    edit_history: Mapping[str, FileEditInfo] | None = None,
    options: SmartContextOptions | None = None,
    *,
    now: datetime | None = None,
) -> SmartContextResult:
    """Expand, score and rank seed files.

    Pipeline: seeds start at dependency score 1.0; dependency expansion adds
    files with decaying dependency score and relevance 0.5; usage and recency
    scores are attached when enabled; the weighted sum orders the result,
    which is capped at max_files.
    """
    opts = options or SmartContextOptions()
    max_files = opts.max_files if opts.max_files > 0 else DEFAULT_MAX_FILES
    now = now or datetime.now(UTC)

    file_scores: dict[str, ContextScore] = {}
    seed_paths: list[str] = []
    for seed in seeds:
        seed_paths.append(seed.path)
        file_scores[seed.path] = ContextScore(
            path=seed.path,
            relevance_score=seed.relevance,
            dependency_score=SEED_DEPENDENCY_SCORE,
        )

    if opts.expand_dependencies and opts.dependency_depth > 0 and seed_paths:
        expanded = expand_with_dependencies(
            db,
            seed_paths,
            ExpandOptions(
                max_depth=opts.dependency_depth,
                exclude_patterns=DEFAULT_EXCLUDE_PATTERNS,
                max_files=max_files,
                both_directions=opts.both_directions,
            ),
        )
        for ef in expanded.files:
            if ef.path not in file_scores:
                file_scores[ef.path] = ContextScore(
                    path=ef.path,
                    relevance_score=EXPANDED_FILE_RELEVANCE,
                    dependency_score=dependency_score(ef.depth),
                )

    if opts.prioritize_by_usage and file_scores:
        usage = get_file_usage_scores(db, list(file_scores))
        for path, score in file_scores.items():
            if path in usage:
                score.usage_score = usage[path].usage_score

    if opts.boost_recent_edits and edit_history:
        for path, score in file_scores.items():
            info = edit_history.get(path)
            if info is not None:
                score.recency_score = recency_score(info.last_edited, now, opts.recent_edit_window)

    for score in file_scores.values():
        score.final_score = (
            score.relevance_score * opts.relevance_weight
            + score.usage_score * opts.usage_weight
            + score.recency_score * opts.recency_weight
            + score.dependency_score * opts.dependency_weight
        )

    ranked = _rank(list(file_scores.values()))[:max_files]
    seed_count = len(set(seed_paths))
    total = sum(s.final_score for s in ranked)
    stats = SmartContextStats(
        seed_files=seed_count,
        expanded_files=max(len(file_scores) - seed_count, 0),
        total_files=len(ranked),
        avg_score=total / len(ranked) if ranked else 0.0,
        max_score=max((s.final_score for s in ranked), default=0.0),
    )
    logger.debug(
        "smart_context_computed",
        seeds=stats.seed_files,
        expanded=stats.expanded_files,
        returned=stats.total_files,
    )
    return SmartContextResult(
        files=ranked,
        expanded_from=seed_paths,
        options=opts.describe(),
        stats=stats,
    )


def quick_score_files(
    db: Database,
    files: Sequence[str],
    edit_history: Mapping[str, FileEditInfo] | None = None,
    *,
    now: datetime | None = None,
) -> list[ContextScore]:
    """Rank an explicit file list by usage and recency, without expansion."""
    now = now or datetime.now(UTC)
    usage = get_file_usage_scores(db, files)
    scores: list[ContextScore] = []
    for path in files:
        score = ContextScore(path=path, relevance_score=1.0)
        if path in usage:
            score.usage_score = usage[path].usage_score
        if edit_history and (info := edit_history.get(path)) is not None:
            score.recency_score = recency_score(info.last_edited, now, DEFAULT_RECENCY_WINDOW)
        score.final_score = (
            score.relevance_score * QUICK_RELEVANCE_WEIGHT
            + score.usage_score * QUICK_USAGE_WEIGHT
            + score.recency_score * QUICK_RECENCY_WEIGHT
        )
        scores.append(score)
    return _rank(scores)
