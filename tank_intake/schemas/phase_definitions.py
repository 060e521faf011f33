"""Phase registry: per-phase required/optional fields and completion thresholds.

Definitions load from ``phases.yaml`` next to this module (or the file named
by TANK_INTAKE_PHASES_FILE). A missing file falls back to the built-in
defaults; a malformed file raises, since a bad phase table is a
configuration bug.

Usage:
    from tank_intake.schemas.phase_definitions import phase_definition_for, next_phase_id

    p1 = phase_definition_for("p1")
    p1.required_fields  # ("siteAddress", "buildingUse", "totalFloorArea")
    next_phase_id("p1")  # "p2"
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import yaml

from ..constants import PHASE_ORDER
from ..exceptions import InvalidPhaseTransition
from .field_catalog import FIELD_CATALOG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseDefinition:
    """Static definition of one workflow phase."""

    phase_id: str
    name: str
    required_fields: Tuple[str, ...] = ()
    optional_fields: Tuple[str, ...] = ()
    completion_threshold: float = 1.0

    def __post_init__(self):
        if not 0 < self.completion_threshold <= 1:
            raise ValueError(
                f"Phase '{self.phase_id}': completion_threshold must be in (0, 1], got {self.completion_threshold}"
            )
        overlap = set(self.required_fields) & set(self.optional_fields)
        if overlap:
            raise ValueError(f"Phase '{self.phase_id}': fields both required and optional: {sorted(overlap)}")

    @property
    def gated(self) -> bool:
        """True when progression depends on extracted fields."""
        return bool(self.required_fields)

    @property
    def tracked_fields(self) -> Tuple[str, ...]:
        return self.required_fields + self.optional_fields


# Built-in defaults, mirrored by phases.yaml
DEFAULT_PHASES: Dict[str, PhaseDefinition] = {
    "p1": PhaseDefinition(
        phase_id="p1",
        name="対象の確認",
        required_fields=("siteAddress", "buildingUse", "totalFloorArea"),
        optional_fields=("projectName", "siteName", "siteArea", "numberOfFloors", "structureType", "landUse"),
        completion_threshold=0.75,
    ),
    "p2": PhaseDefinition(
        phase_id="p2",
        name="設計方針の決定",
        required_fields=("tankCapacity", "tankContent", "tankDiameter", "tankHeight", "seismicLevel", "soilType"),
        optional_fields=("roofType", "groundwaterLevel", "allowableStress"),
        completion_threshold=0.8,
    ),
    "p3": PhaseDefinition(
        phase_id="p3",
        name="設計条件設定",
        required_fields=("designCriteria", "loadCases", "safetyFactors"),
        optional_fields=("specialConsiderations", "environmentalFactors"),
        completion_threshold=0.9,
    ),
    "p4": PhaseDefinition(phase_id="p4", name="設計計算の実施"),
    "p5": PhaseDefinition(phase_id="p5", name="評価の実施"),
    "p6": PhaseDefinition(phase_id="p6", name="概算コスト工期算定"),
    "p7": PhaseDefinition(phase_id="p7", name="市場性と収益構造の具体分析"),
    "p8": PhaseDefinition(phase_id="p8", name="サマリ"),
}

# Module-level cache
_registry_cache: Optional[Dict[str, PhaseDefinition]] = None


def _get_config_path() -> Path:
    env_path = os.environ.get("TANK_INTAKE_PHASES_FILE")
    if env_path:
        return Path(env_path).expanduser()
    return Path(__file__).parent / "phases.yaml"


def _validate_field_keys(phase_id: str, keys: Iterable[str]) -> None:
    unknown = [k for k in keys if k not in FIELD_CATALOG]
    if unknown:
        raise ValueError(f"Phase '{phase_id}' references unknown fields: {unknown}")


def parse_phase_config(raw: dict) -> Dict[str, PhaseDefinition]:
    """
    Build phase definitions from a parsed YAML document.

    Raises:
        ValueError: unknown phase ids, unknown field keys or bad thresholds
    """
    phases_raw = (raw or {}).get("phases")
    if not isinstance(phases_raw, dict) or not phases_raw:
        raise ValueError("Phase config must contain a non-empty 'phases' mapping")

    registry: Dict[str, PhaseDefinition] = {}
    for phase_id in PHASE_ORDER:
        data = phases_raw.get(phase_id)
        if data is None:
            registry[phase_id] = DEFAULT_PHASES[phase_id]
            continue

        required = tuple(data.get("required_fields") or ())
        optional = tuple(data.get("optional_fields") or ())
        _validate_field_keys(phase_id, required + optional)

        registry[phase_id] = PhaseDefinition(
            phase_id=phase_id,
            name=data.get("name", DEFAULT_PHASES[phase_id].name),
            required_fields=required,
            optional_fields=optional,
            completion_threshold=float(data.get("completion_threshold", 1.0)),
        )

    extra = set(phases_raw) - set(PHASE_ORDER)
    if extra:
        raise ValueError(f"Unknown phase ids in config: {sorted(extra)}")

    return registry


def _load_registry() -> Dict[str, PhaseDefinition]:
    """Load and cache phase definitions from YAML."""
    global _registry_cache
    if _registry_cache is not None:
        return _registry_cache

    config_path = _get_config_path()
    if not config_path.exists():
        logger.warning(f"Phase config not found at {config_path}, using defaults")
        _registry_cache = dict(DEFAULT_PHASES)
        return _registry_cache

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    _registry_cache = parse_phase_config(raw)
    logger.debug(f"Loaded {len(_registry_cache)} phase definitions from {config_path}")
    return _registry_cache


def clear_cache():
    """Clear the registry cache (useful for testing)."""
    global _registry_cache
    _registry_cache = None


def list_phases() -> Tuple[PhaseDefinition, ...]:
    """All phases in workflow order."""
    registry = _load_registry()
    return tuple(registry[phase_id] for phase_id in PHASE_ORDER)


def phase_definition_for(phase_id: str) -> PhaseDefinition:
    """
    Look up a phase definition.

    Raises:
        InvalidPhaseTransition: no definition for phase_id
    """
    registry = _load_registry()
    definition = registry.get(phase_id)
    if definition is None:
        raise InvalidPhaseTransition(f"No phase definition for '{phase_id}'. Known phases: {list(PHASE_ORDER)}")
    return definition


def next_phase_id(phase_id: str) -> Optional[str]:
    """
    Immediate successor in the linear p1..p8 sequence, None for the last phase.

    Raises:
        InvalidPhaseTransition: phase_id is not part of the sequence
    """
    if phase_id not in PHASE_ORDER:
        raise InvalidPhaseTransition(f"Unknown phase '{phase_id}'")
    index = PHASE_ORDER.index(phase_id)
    if index + 1 >= len(PHASE_ORDER):
        return None
    return PHASE_ORDER[index + 1]
