"""Quality scores: read access to the external scoring engine's verdicts.

An A/B result only stores a quality_score_id. The decision engine resolves it
here to the numeric score, the pass/fail verdict and per-criterion detail.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CriterionScore:
    """One criterion's assessment inside a quality score."""

    criterion_id: str
    passed: bool
    score: float = 0.0  # 0 fail | 0.5 partial | 1 pass

    def to_dict(self) -> dict[str, Any]:
        return {"criterion_id": self.criterion_id, "passed": self.passed, "score": self.score}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "CriterionScore":
        return cls(
            criterion_id=d["criterion_id"],
            passed=bool(d.get("passed", False)),
            score=float(d.get("score", 0.0)),
        )


@dataclass
class QualityScore:
    """Scoring engine output for one generated artifact."""

    id: str
    overall_score: float  # 0-100
    passed: bool
    job_id: Optional[str] = None
    criteria: list[CriterionScore] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "overall_score": self.overall_score,
            "passed": self.passed,
            "criteria": [c.to_dict() for c in self.criteria],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "QualityScore":
        return cls(
            id=str(d["id"]),
            job_id=d.get("job_id"),
            overall_score=float(d.get("overall_score", 0.0)),
            passed=bool(d.get("passed", False)),
            criteria=[CriterionScore.from_dict(c) for c in d.get("criteria") or []],
        )


class QualityScoreProvider(ABC):
    """Resolves quality_score_id references to scores."""

    @abstractmethod
    def get_score(self, quality_score_id: str) -> Optional[QualityScore]:
        """Return the score, or None if the scoring engine has no such record."""
        ...

    def get_scores(self, quality_score_ids: Iterable[str]) -> dict[str, QualityScore]:
        """Resolve many ids; unknown ids are left out of the result."""
        found = {}
        for sid in quality_score_ids:
            score = self.get_score(sid)
            if score is not None:
                found[sid] = score
        return found


class InMemoryQualityScoreProvider(QualityScoreProvider):
    """Dict-backed provider for tests and embedding."""

    def __init__(self, scores: Optional[Iterable[QualityScore]] = None):
        self._scores: dict[str, QualityScore] = {}
        for s in scores or []:
            self.add(s)

    def add(self, score: QualityScore) -> QualityScore:
        self._scores[score.id] = score
        return score

    def get_score(self, quality_score_id: str) -> Optional[QualityScore]:
        return self._scores.get(quality_score_id)


class JsonlQualityScoreProvider(QualityScoreProvider):
    """File-based provider (JSONL, one score per line). The scoring engine appends."""

    def __init__(self, path: str = "./data/quality/scores.jsonl"):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def add(self, score: QualityScore) -> QualityScore:
        """Append a score record."""
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(json.dumps(score.to_dict(), ensure_ascii=False) + "\n")
        return score

    def _load(self) -> dict[str, QualityScore]:
        if not self._path.exists():
            return {}
        scores = {}
        for lineno, line in enumerate(self._path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                s = QualityScore.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping malformed quality score at %s:%s: %s", self._path, lineno, e)
                continue
            # later lines win: a re-score replaces the earlier record
            scores[s.id] = s
        return scores

    def get_score(self, quality_score_id: str) -> Optional[QualityScore]:
        return self._load().get(quality_score_id)

    def get_scores(self, quality_score_ids: Iterable[str]) -> dict[str, QualityScore]:
        loaded = self._load()
        return {sid: loaded[sid] for sid in quality_score_ids if sid in loaded}
