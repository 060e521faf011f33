"""
ProjectInfo - denormalized view of the canonical field set.

A projection only: it is rebuilt from the field set whenever it is needed and
is never written back. Numeric attributes are parsed from the display values
("5000㎡" -> 5000.0).
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..utils.numbers import parse_float
from .extracted_field import ExtractedField

# attribute -> (field key, numeric)
_PROJECTION = {
    "project_name": ("projectName", False),
    "site_name": ("siteName", False),
    "site_address": ("siteAddress", False),
    "site_area": ("siteArea", True),
    "ground_info": ("groundInfo", False),
    "land_use": ("landUse", False),
    "building_coverage_ratio": ("buildingCoverageRatio", True),
    "floor_area_ratio": ("floorAreaRatio", True),
    "building_use": ("buildingUse", False),
    "total_floor_area": ("totalFloorArea", True),
    "number_of_floors": ("numberOfFloors", False),
    "structure_type": ("structureType", False),
    "tank_capacity": ("tankCapacity", True),
    "tank_content": ("tankContent", False),
    "tank_diameter": ("tankDiameter", True),
    "tank_height": ("tankHeight", True),
    "roof_type": ("roofType", False),
    "seismic_level": ("seismicLevel", False),
    "soil_type": ("soilType", False),
    "groundwater_level": ("groundwaterLevel", False),
    "allowable_stress": ("allowableStress", False),
    "design_criteria": ("designCriteria", False),
    "safety_factors": ("safetyFactors", False),
    "special_considerations": ("specialConsiderations", False),
    "environmental_factors": ("environmentalFactors", False),
}


class ProjectInfo(BaseModel):
    """Named project properties for forms and persistence."""

    project_name: Optional[str] = None
    site_name: Optional[str] = None
    site_address: Optional[str] = None
    site_area: Optional[float] = Field(None, description="㎡")
    ground_info: Optional[str] = None
    land_use: Optional[str] = None
    building_coverage_ratio: Optional[float] = Field(None, description="percent")
    floor_area_ratio: Optional[float] = Field(None, description="percent")
    building_use: Optional[str] = None
    total_floor_area: Optional[float] = Field(None, description="㎡")
    number_of_floors: Optional[str] = None
    structure_type: Optional[str] = None
    tank_capacity: Optional[float] = Field(None, description="kL")
    tank_content: Optional[str] = None
    tank_diameter: Optional[float] = Field(None, description="m")
    tank_height: Optional[float] = Field(None, description="m")
    roof_type: Optional[str] = None
    seismic_level: Optional[str] = None
    soil_type: Optional[str] = None
    groundwater_level: Optional[str] = None
    allowable_stress: Optional[str] = None
    design_criteria: Optional[str] = None
    load_cases: List[str] = Field(default_factory=list)
    safety_factors: Optional[str] = None
    special_considerations: Optional[str] = None
    environmental_factors: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_fields(cls, fields: Sequence[ExtractedField]) -> "ProjectInfo":
        """Project every valued entry of the canonical set."""
        values = {f.key: f.value for f in fields if f.value is not None}

        data: Dict[str, Any] = {}
        for attribute, (key, numeric) in _PROJECTION.items():
            raw = values.get(key)
            if raw is None:
                continue
            data[attribute] = parse_float(raw) if numeric else raw

        if values.get("loadCases"):
            data["load_cases"] = [part.strip() for part in values["loadCases"].split(",") if part.strip()]

        return cls(**data)

    def form_defaults(self) -> Dict[str, Dict[str, Any]]:
        """
        Prefill values for the design input form, grouped by form section.

        Sections without any known value are omitted.
        """
        sections = {
            "project": {"name": self.project_name},
            "site": {
                "site_name": self.site_name,
                "location": self.site_address,
                "area_m2": self.site_area,
                "soil_type": self.soil_type,
                "groundwater_level": self.groundwater_level,
            },
            "building": {
                "use": self.building_use,
                "total_floor_area_m2": self.total_floor_area,
                "floors": self.number_of_floors,
                "structure_type": self.structure_type,
            },
            "tank": {
                "capacity_kl": self.tank_capacity,
                "content_type": self.tank_content,
                "diameter_m": self.tank_diameter,
                "height_m": self.tank_height,
                "roof_type": self.roof_type,
            },
            "criteria": {
                "seismic_level": self.seismic_level,
                "design_standards": self.design_criteria,
                "load_cases": self.load_cases or None,
                "safety_factors": self.safety_factors,
            },
        }
        return {
            name: {k: v for k, v in values.items() if v is not None}
            for name, values in sections.items()
            if any(v is not None for v in values.values())
        }
