"""Shared fixtures for intake engine tests.

Nothing here talks to a real language model; LLM behaviour is simulated with
small callables passed to the coordinator.
"""

import pytest

from tank_intake.models.extracted_field import ExtractedField, FieldCategory, FieldSource, FieldStatus
from tank_intake.schemas import phase_definitions
from tank_intake.services.orchestration import OrchestrationCoordinator
from tank_intake.utils.worker_pool import WorkerPool

SCENARIO_TEXT = "所在地：東京都港区六本木1-1-1\n延床面積：5000㎡\n階数：10階建"


def make_field(
    key: str,
    value="x",
    confidence: float = 0.5,
    source: FieldSource = FieldSource.PATTERN,
    status: FieldStatus = None,
    **overrides,
) -> ExtractedField:
    """Build an ExtractedField with sensible defaults, override any attribute."""
    if status is None:
        status = FieldStatus.EXTRACTED if value is not None else FieldStatus.MISSING
    data = dict(
        key=key,
        label=key,
        category=FieldCategory.OTHER,
        value=value,
        confidence=confidence,
        source=source,
        status=status,
    )
    data.update(overrides)
    return ExtractedField(**data)


@pytest.fixture(autouse=True)
def reset_phase_registry(monkeypatch):
    """Every test sees the bundled phase table."""
    monkeypatch.delenv("TANK_INTAKE_PHASES_FILE", raising=False)
    phase_definitions.clear_cache()
    yield
    phase_definitions.clear_cache()


@pytest.fixture
def worker_pool():
    pool = WorkerPool(max_workers=2, thread_name_prefix="test-llm")
    yield pool
    pool.shutdown(wait=False)


@pytest.fixture
def coordinator(worker_pool):
    """Pattern-only coordinator without persistence."""
    coord = OrchestrationCoordinator(worker_pool=worker_pool, llm_timeout_seconds=1.0)
    yield coord
    coord.close()


@pytest.fixture
def scenario_text():
    return SCENARIO_TEXT
