"""Tests for quality score providers."""

from src.promptlab.evaluation.quality_scores import (
    CriterionScore,
    InMemoryQualityScoreProvider,
    JsonlQualityScoreProvider,
    QualityScore,
)


def test_in_memory_provider():
    """InMemoryQualityScoreProvider resolves known ids and skips unknown ones."""
    provider = InMemoryQualityScoreProvider([QualityScore(id="q1", overall_score=88.0, passed=True)])
    assert provider.get_score("q1").overall_score == 88.0
    assert provider.get_score("missing") is None
    assert set(provider.get_scores(["q1", "missing"])) == {"q1"}


def test_jsonl_provider_roundtrip(tmp_path):
    """Scores appended to the JSONL file are read back with their criteria."""
    provider = JsonlQualityScoreProvider(path=str(tmp_path / "quality" / "scores.jsonl"))
    provider.add(
        QualityScore(
            id="q1",
            overall_score=91.5,
            passed=True,
            job_id="job-1",
            criteria=[CriterionScore("output_format", True, 1.0), CriterionScore("safety", False, 0.5)],
        )
    )
    score = provider.get_score("q1")
    assert score.job_id == "job-1"
    assert score.overall_score == 91.5
    assert [c.criterion_id for c in score.criteria] == ["output_format", "safety"]
    assert score.criteria[1].passed is False


def test_jsonl_provider_missing_file(tmp_path):
    """A provider over a file that does not exist yet returns nothing."""
    provider = JsonlQualityScoreProvider(path=str(tmp_path / "none.jsonl"))
    assert provider.get_score("q1") is None
    assert provider.get_scores(["q1"]) == {}


def test_jsonl_provider_skips_malformed_lines_and_later_wins(tmp_path):
    """Malformed lines are skipped; a re-score later in the file replaces the earlier one."""
    path = tmp_path / "scores.jsonl"
    provider = JsonlQualityScoreProvider(path=str(path))
    provider.add(QualityScore(id="q1", overall_score=60.0, passed=False))
    with open(path, "a", encoding="utf-8") as f:
        f.write("{not json\n")
        f.write("\n")
        f.write('{"overall_score": 10}\n')
    provider.add(QualityScore(id="q1", overall_score=80.0, passed=True))
    provider.add(QualityScore(id="q2", overall_score=70.0, passed=False))

    found = provider.get_scores(["q1", "q2", "q3"])
    assert set(found) == {"q1", "q2"}
    assert found["q1"].overall_score == 80.0
    assert found["q1"].passed is True
