"""promptlab: versioned prompts and A/B experiments for an AI generation pipeline.

This package provides the pieces an orchestrator needs to run prompts safely:

- **Prompt versions**: append-only, content-addressed history with exactly one
  active version per prompt
- **Experiments**: A/B tests between two versions of a prompt, with a guarded
  lifecycle (draft, running, paused, completed, cancelled) and an idempotent
  result log
- **Variant assignment**: deterministic job -> variant routing
- **Decision engine**: Welch's t-test on quality scores, winner selection and
  optional promotion of the winner

Architecture:

    - **db/**: SQLAlchemy tables and transactional sessions
    - **prompts/**: Prompt version store
    - **experiments/**: Experiment store, assignment, statistics, decisions
    - **evaluation/**: Quality score provider interface (external scoring engine)
    - **observability/**: Audit notifications and logging setup
    - **api/**: FastAPI dependency providers

Quick Start:
    ```python
    from src.promptlab.db import Database
    from src.promptlab.prompts import PromptVersionStore

    db = Database("sqlite:///./data/promptlab.db")
    db.create_all()
    versions = PromptVersionStore(db)

    versions.create_version("toolBuilder", "You build tools...", author="ops")
    active = versions.get_active("toolBuilder")
    ```
"""

from .config import get_settings, get_settings_dep

__all__ = ["get_settings", "get_settings_dep"]
