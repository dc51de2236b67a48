"""A/B test types: status machine, variants, validated config and results."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..config import PromptLabSettings
from ..exceptions import ValidationError


class ABTestStatus(str, Enum):
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ABTestStatus.COMPLETED, ABTestStatus.CANCELLED)


class Variant(str, Enum):
    A = "A"
    B = "B"


WINNER_NONE = "none"

# action -> (allowed source statuses, target status)
TRANSITIONS: dict[str, tuple[frozenset[ABTestStatus], ABTestStatus]] = {
    "start": (frozenset({ABTestStatus.DRAFT, ABTestStatus.PAUSED}), ABTestStatus.RUNNING),
    "pause": (frozenset({ABTestStatus.RUNNING}), ABTestStatus.PAUSED),
    "cancel": (
        frozenset({ABTestStatus.DRAFT, ABTestStatus.RUNNING, ABTestStatus.PAUSED}),
        ABTestStatus.CANCELLED,
    ),
    "complete": (frozenset({ABTestStatus.RUNNING}), ABTestStatus.COMPLETED),
}


@dataclass(frozen=True)
class PromptVariant:
    """One arm of a test: which prompt version it serves."""

    variant_id: Variant
    prompt_version_id: str
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "variant_id", Variant(self.variant_id))

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant_id": self.variant_id.value,
            "prompt_version_id": self.prompt_version_id,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PromptVariant":
        return cls(
            variant_id=Variant(d["variant_id"]),
            prompt_version_id=d["prompt_version_id"],
            description=d.get("description"),
        )


@dataclass(frozen=True)
class ABTestConfig:
    """Sampling and decision thresholds for one test. Validated on construction."""

    min_samples_per_variant: int = 10
    max_samples_total: Optional[int] = None
    significance_threshold: float = 0.05
    auto_adopt: bool = False
    # absolute score points on the 0-100 quality scale
    min_improvement: float = 10.0

    def __post_init__(self):
        if isinstance(self.min_samples_per_variant, bool) or not isinstance(self.min_samples_per_variant, int):
            raise ValidationError("min_samples_per_variant", "must be an integer")
        if self.min_samples_per_variant <= 0:
            raise ValidationError("min_samples_per_variant", "must be positive")
        if self.max_samples_total is not None and self.max_samples_total <= 0:
            raise ValidationError("max_samples_total", "must be positive when set")
        if not 0 < self.significance_threshold < 1:
            raise ValidationError("significance_threshold", "must be strictly between 0 and 1")
        if self.min_improvement < 0:
            raise ValidationError("min_improvement", "must not be negative")

    @classmethod
    def from_settings(cls, settings: PromptLabSettings, **overrides: Any) -> "ABTestConfig":
        """Defaults from AB_* settings, with explicit overrides on top."""
        values = {
            "min_samples_per_variant": settings.AB_MIN_SAMPLES_PER_VARIANT,
            "max_samples_total": settings.AB_MAX_SAMPLES_TOTAL,
            "significance_threshold": settings.AB_SIGNIFICANCE_THRESHOLD,
            "auto_adopt": settings.AB_AUTO_ADOPT,
            "min_improvement": settings.AB_MIN_IMPROVEMENT,
        }
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ABTestConfig":
        return cls(
            min_samples_per_variant=d["min_samples_per_variant"],
            max_samples_total=d.get("max_samples_total"),
            significance_threshold=d["significance_threshold"],
            auto_adopt=d.get("auto_adopt", False),
            min_improvement=d.get("min_improvement", 10.0),
        )


@dataclass(frozen=True)
class CriterionBreakdown:
    """Pass rates (percent) of one quality criterion per variant."""

    variant_a_pass_rate: float
    variant_b_pass_rate: float


@dataclass(frozen=True)
class ABTestResults:
    """Statistical snapshot of a test. Overwritable while running, frozen once completed."""

    variant_a_samples: int
    variant_b_samples: int
    variant_a_avg_score: float
    variant_b_avg_score: float
    p_value: float
    significant: bool
    winner: str  # "A" | "B" | "none"
    per_criterion: dict[str, CriterionBreakdown] = field(default_factory=dict)
    variant_a_pass_rate: Optional[float] = None
    variant_b_pass_rate: Optional[float] = None
    evaluated_at: Optional[datetime] = None

    @property
    def winning_variant(self) -> Optional[Variant]:
        return None if self.winner == WINNER_NONE else Variant(self.winner)

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant_a_samples": self.variant_a_samples,
            "variant_b_samples": self.variant_b_samples,
            "variant_a_avg_score": self.variant_a_avg_score,
            "variant_b_avg_score": self.variant_b_avg_score,
            "p_value": self.p_value,
            "significant": self.significant,
            "winner": self.winner,
            "per_criterion": {k: asdict(v) for k, v in self.per_criterion.items()},
            "variant_a_pass_rate": self.variant_a_pass_rate,
            "variant_b_pass_rate": self.variant_b_pass_rate,
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ABTestResults":
        evaluated = d.get("evaluated_at")
        return cls(
            variant_a_samples=d["variant_a_samples"],
            variant_b_samples=d["variant_b_samples"],
            variant_a_avg_score=d["variant_a_avg_score"],
            variant_b_avg_score=d["variant_b_avg_score"],
            p_value=d["p_value"],
            significant=d["significant"],
            winner=d["winner"],
            per_criterion={k: CriterionBreakdown(**v) for k, v in (d.get("per_criterion") or {}).items()},
            variant_a_pass_rate=d.get("variant_a_pass_rate"),
            variant_b_pass_rate=d.get("variant_b_pass_rate"),
            evaluated_at=datetime.fromisoformat(evaluated) if evaluated else None,
        )


@dataclass(frozen=True)
class ABTest:
    """Experiment comparing two versions of the same prompt."""

    id: str
    name: str
    prompt_name: str
    variant_a: PromptVariant
    variant_b: PromptVariant
    status: ABTestStatus
    config: ABTestConfig
    created_by: str
    created_at: datetime
    results: Optional[ABTestResults] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def variant(self, variant_id: Variant | str) -> PromptVariant:
        return self.variant_a if Variant(variant_id) == Variant.A else self.variant_b


@dataclass(frozen=True)
class ABResult:
    """One job's outcome under one variant."""

    id: str
    ab_test_id: str
    variant_id: Variant
    job_id: str
    quality_score_id: str
    created_at: datetime


@dataclass(frozen=True)
class VariantCounts:
    a: int = 0
    b: int = 0

    @property
    def total(self) -> int:
        return self.a + self.b

    @property
    def minimum(self) -> int:
        return min(self.a, self.b)
