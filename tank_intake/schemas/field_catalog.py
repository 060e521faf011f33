"""
Field catalog: the static registry of every project field the engine knows.

Each entry is declarative data. Keywords and regex patterns drive the
pattern extractor, the normalizer name picks a strategy from
``extractors.normalizers`` and the question is what the coordinator asks when
the field is still missing.

Usage:
    from tank_intake.schemas.field_catalog import FIELD_CATALOG, field_label

    definition = FIELD_CATALOG["siteAddress"]
    definition.patterns[0].search("所在地：東京都港区六本木1-1-1")
    field_label("tankCapacity")  # "タンク容量"
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from ..exceptions import UnknownFieldError
from ..extractors.normalizers import Normalizer, get_normalizer
from ..models.extracted_field import FieldCategory

# Line-terminated capture used by "label：value" patterns
_REST_OF_LINE = r"\s*(.+?)(?:\n|$)"
_AREA_UNIT = r"\s*(?:㎡|m2|m²|平米)"
_LENGTH_UNIT = r"\s*(?:m|メートル)(?![A-Za-z²2])"
_STRUCTURES = r"SRC造|RC造|S造|木造|鉄骨鉄筋コンクリート造|鉄筋コンクリート造|鉄骨造"


@dataclass(frozen=True)
class FieldDefinition:
    """Static definition of one extractable field."""

    key: str
    label: str
    category: FieldCategory
    keywords: Tuple[str, ...]
    patterns: Tuple[Pattern[str], ...]
    normalizer_name: str = "text"
    required: bool = False
    question: Optional[str] = None
    normalizer: Normalizer = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.keywords:
            raise ValueError(f"Field '{self.key}' must declare at least one keyword")
        # Resolve now so an unknown strategy name fails at import time
        object.__setattr__(self, "normalizer", get_normalizer(self.normalizer_name))

    @property
    def follow_up_question(self) -> str:
        return self.question or f"{self.label}を入力してください。"


def _define(
    key: str,
    label: str,
    category: FieldCategory,
    keywords: Sequence[str],
    patterns: Sequence[str],
    normalizer: str = "text",
    required: bool = False,
    question: Optional[str] = None,
) -> FieldDefinition:
    return FieldDefinition(
        key=key,
        label=label,
        category=category,
        keywords=tuple(keywords),
        patterns=tuple(re.compile(p) for p in patterns),
        normalizer_name=normalizer,
        required=required,
        question=question,
    )


_DEFINITIONS: List[FieldDefinition] = [
    # ------------------------------------------------------------------
    # Site
    # ------------------------------------------------------------------
    _define(
        "projectName",
        "プロジェクト名",
        FieldCategory.SITE,
        ["プロジェクト名", "案件名", "工事名", "計画名", "プロジェクト"],
        [
            r"(?:プロジェクト名|案件名|工事名|計画名)[：:]" + _REST_OF_LINE,
            r"「(.+?)」(?:プロジェクト|計画|工事)",
            r"([^\s：:、。「」]{2,30}?(?:プロジェクト|計画|工事))(?:\s|$)",
        ],
        question="プロジェクト名を教えてください。",
    ),
    _define(
        "siteName",
        "敷地名称",
        FieldCategory.SITE,
        ["敷地名称", "施設名", "建物名"],
        [r"(?:敷地名称|施設名|建物名)[：:]" + _REST_OF_LINE],
    ),
    _define(
        "siteAddress",
        "敷地住所",
        FieldCategory.SITE,
        ["住所", "所在地", "建設地", "敷地"],
        [
            r"(?:住所|所在地|建設地)[：:]" + _REST_OF_LINE,
            r"(?:〒\d{3}-?\d{4}\s*)?((?:東京都|北海道|(?:京都|大阪)府|(?:神奈川|埼玉|千葉|愛知|兵庫|福岡)県)"
            r".+?(?:市|区|町|村).+?)(?:\n|$)",
        ],
        required=True,
        question="プロジェクトの敷地住所を教えてください。",
    ),
    _define(
        "siteArea",
        "敷地面積",
        FieldCategory.SITE,
        ["敷地面積", "敷地", "土地面積"],
        [
            r"敷地面積[：:]\s*([\d,]+\.?\d*)" + _AREA_UNIT,
            r"(?:敷地|土地面積)[：:]\s*([\d,]+\.?\d*)" + _AREA_UNIT,
        ],
        normalizer="area",
        question="敷地面積は何㎡ですか？",
    ),
    _define(
        "groundInfo",
        "地盤情報",
        FieldCategory.SITE,
        ["地盤", "N値", "支持層", "液状化"],
        [
            r"(?:地盤|支持層)[：:]" + _REST_OF_LINE,
            r"(N値[：:]\s*\d+)",
            r"(液状化(?:の)?(?:可能性|リスク|懸念)(?:が)?(?:ある|高い|低い))",
        ],
    ),
    # ------------------------------------------------------------------
    # Regulation
    # ------------------------------------------------------------------
    _define(
        "landUse",
        "用途地域",
        FieldCategory.REGULATION,
        ["用途地域", "都市計画"],
        [
            r"用途地域[：:]" + _REST_OF_LINE,
            r"(第[一二三]種(?:低層|中高層)?住居(?:専用)?地域|(?:近隣)?商業地域|準?工業地域|工業専用地域)",
        ],
        question="用途地域を教えてください。（例：商業地域、準工業地域）",
    ),
    _define(
        "buildingCoverageRatio",
        "建ぺい率",
        FieldCategory.REGULATION,
        ["建ぺい率", "建蔽率"],
        [
            r"建[ぺ蔽]い?率[：:]\s*(\d+(?:\.\d+)?\s*[%％])",
            r"建[ぺ蔽]い?率[：:]\s*(\d+\s*/\s*\d+)",
        ],
        normalizer="ratio",
    ),
    _define(
        "floorAreaRatio",
        "容積率",
        FieldCategory.REGULATION,
        ["容積率"],
        [
            r"容積率[：:]\s*(\d+(?:\.\d+)?\s*[%％])",
            r"容積率[：:]\s*(\d+\s*/\s*\d+)",
        ],
        normalizer="ratio",
    ),
    # ------------------------------------------------------------------
    # Building program
    # ------------------------------------------------------------------
    _define(
        "buildingUse",
        "建物用途",
        FieldCategory.PROGRAM,
        ["建物用途", "用途", "施設用途", "建築用途"],
        [
            r"(?:建物|施設|建築)?用途[：:]" + _REST_OF_LINE,
            r"(?:事務所|店舗|工場|倉庫|住宅|ホテル|病院|学校)(?:ビル|建築|建物)?",
        ],
        required=True,
        question="建物の用途は何ですか？（例：事務所、工場、倉庫）",
    ),
    _define(
        "totalFloorArea",
        "延床面積",
        FieldCategory.PROGRAM,
        ["延床面積", "延べ床面積", "総床面積", "建築面積"],
        [
            r"(?:延べ?床|総床|建築)面積[：:]\s*([\d,]+\.?\d*)" + _AREA_UNIT,
            r"(?:延べ?床|総床)[：:]\s*([\d,]+\.?\d*)" + _AREA_UNIT,
        ],
        normalizer="area",
        required=True,
        question="延床面積は何㎡ですか？",
    ),
    _define(
        "numberOfFloors",
        "階数",
        FieldCategory.PROGRAM,
        ["階数", "階建", "地上", "地下"],
        [
            r"(地上\d+階(?:.*?地下\d+階)?)",
            r"(\d+)階建",
            r"(?<![Bb\d])(\d+)[Ff](?![A-Za-z])",
        ],
        normalizer="floors",
        question="建物は何階建てですか？",
    ),
    _define(
        "structureType",
        "構造種別",
        FieldCategory.BUILDING,
        ["構造", "構造種別", "S造", "RC造", "SRC造", "木造"],
        [
            r"構造(?:種別)?[：:]\s*(" + _STRUCTURES + r")",
            r"(" + _STRUCTURES + r")(?:を?希望|で?検討|を?想定)",
        ],
        question="構造種別を教えてください。（例：RC造、S造）",
    ),
    # ------------------------------------------------------------------
    # Tank
    # ------------------------------------------------------------------
    _define(
        "tankCapacity",
        "タンク容量",
        FieldCategory.TANK,
        ["タンク容量", "貯蔵量", "容量", "kL", "キロリットル"],
        [
            r"(?:タンク)?容量[：:]\s*([\d,]+(?:\.\d+)?)\s*(?:kL|KL|kl|キロリットル)",
            r"(\d+)\s*(?:kL|KL|kl)(?:タンク|型)",
        ],
        normalizer="number",
        required=True,
        question="タンクの容量は何kLですか？",
    ),
    _define(
        "tankContent",
        "内容物",
        FieldCategory.TANK,
        ["内容物", "貯蔵物", "危険物", "油種"],
        [
            r"(?:内容物|貯蔵物|油種)[：:]" + _REST_OF_LINE,
            r"(?:ガソリン|軽油|重油|灯油|原油|アルコール|化学薬品)",
        ],
        required=True,
        question="タンクの内容物は何ですか？",
    ),
    _define(
        "tankDiameter",
        "タンク直径",
        FieldCategory.TANK,
        ["タンク直径", "直径", "内径"],
        [
            r"(?:タンク)?直径[：:]\s*([\d,]+\.?\d*)" + _LENGTH_UNIT,
            r"内径[：:]\s*([\d,]+\.?\d*)" + _LENGTH_UNIT,
        ],
        normalizer="number",
        required=True,
        question="タンクの直径は何メートルですか？",
    ),
    _define(
        "tankHeight",
        "タンク高さ",
        FieldCategory.TANK,
        ["タンク高さ", "高さ", "タンク高"],
        [
            r"(?:タンク高さ|(?<![^\s、，,。])高さ)[：:]\s*([\d,]+\.?\d*)" + _LENGTH_UNIT,
            r"タンク高[：:]\s*([\d,]+\.?\d*)" + _LENGTH_UNIT,
        ],
        normalizer="number",
        required=True,
        question="タンクの高さは何メートルですか？",
    ),
    _define(
        "roofType",
        "屋根形式",
        FieldCategory.TANK,
        ["屋根形式", "屋根", "固定屋根", "浮き屋根"],
        [
            r"屋根(?:形式|形状|種別)[：:]" + _REST_OF_LINE,
            r"(内部浮き屋根|浮き屋根|固定屋根|ドーム屋根|コーンルーフ)",
        ],
    ),
    # ------------------------------------------------------------------
    # Design policy (p2)
    # ------------------------------------------------------------------
    _define(
        "seismicLevel",
        "耐震レベル",
        FieldCategory.REGULATION,
        ["耐震レベル", "耐震", "レベル1", "レベル2", "地震動"],
        [
            r"(?:耐震|地震動)レベル[：:]?\s*((?:L|Ｌ|レベル)?\s*[12１２])",
            r"((?:L|Ｌ)[12１２])\s*(?:地震動|レベル)",
        ],
        normalizer="seismic_level",
        required=True,
        question="耐震レベルはL1・L2のどちらですか？",
    ),
    _define(
        "soilType",
        "地盤種別",
        FieldCategory.SITE,
        ["地盤種別", "地盤種", "第1種地盤", "第2種地盤", "第3種地盤"],
        [
            r"地盤種別?[：:]\s*(第[1-3一二三１-３]種(?:地盤)?)",
            r"(第[1-3一二三１-３]種地盤)",
        ],
        required=True,
        question="地盤種別（第1種〜第3種）を教えてください。",
    ),
    _define(
        "groundwaterLevel",
        "地下水位",
        FieldCategory.SITE,
        ["地下水位", "地下水", "GL-"],
        [
            r"地下水位[：:]\s*((?:GL)?\s*[-−－]?\s*[\d.]+\s*m)",
            r"(GL\s*[-−－]\s*[\d.]+\s*m)",
        ],
    ),
    _define(
        "allowableStress",
        "許容応力度",
        FieldCategory.SITE,
        ["許容応力度", "許容支持力", "長期許容", "地耐力"],
        [
            r"(?:許容応力度|許容支持力度?|地耐力)[：:]\s*([\d,]+\.?\d*\s*(?:kN/㎡|kN/m2|kN/m²|t/㎡|t/m2))",
        ],
    ),
    # ------------------------------------------------------------------
    # Design conditions (p3)
    # ------------------------------------------------------------------
    _define(
        "designCriteria",
        "設計基準",
        FieldCategory.REGULATION,
        ["設計基準", "準拠基準", "適用基準", "消防法", "建築基準法"],
        [r"(?:設計|準拠|適用)基準[：:]" + _REST_OF_LINE],
        normalizer="list",
        required=True,
        question="準拠する設計基準を教えてください。（例：消防法、建築基準法）",
    ),
    _define(
        "loadCases",
        "荷重ケース",
        FieldCategory.PROGRAM,
        ["荷重ケース", "荷重条件", "荷重組合せ", "地震時", "常時"],
        [r"荷重(?:ケース|条件|組合せ)[：:]" + _REST_OF_LINE],
        normalizer="list",
        required=True,
        question="検討する荷重ケースを教えてください。（例：常時、地震時）",
    ),
    _define(
        "safetyFactors",
        "安全率",
        FieldCategory.REGULATION,
        ["安全率", "安全係数"],
        [r"安全(?:率|係数)[：:]" + _REST_OF_LINE],
        required=True,
        question="採用する安全率を教えてください。",
    ),
    _define(
        "specialConsiderations",
        "特記事項",
        FieldCategory.PROGRAM,
        ["特記事項", "留意事項", "特殊条件", "配慮事項"],
        [
            r"(?:特記|留意|配慮)事項[：:]" + _REST_OF_LINE,
            r"特殊条件[：:]" + _REST_OF_LINE,
        ],
    ),
    _define(
        "environmentalFactors",
        "環境条件",
        FieldCategory.SITE,
        ["環境条件", "周辺環境", "塩害", "積雪", "風速"],
        [r"(?:環境条件|周辺環境)[：:]" + _REST_OF_LINE],
    ),
]

FIELD_CATALOG: Dict[str, FieldDefinition] = {}
for _definition in _DEFINITIONS:
    if _definition.key in FIELD_CATALOG:
        raise ValueError(f"Duplicate field definition: {_definition.key}")
    FIELD_CATALOG[_definition.key] = _definition


def get_field_definition(key: str) -> Optional[FieldDefinition]:
    """Return the definition for a key, or None if the key is unknown."""
    return FIELD_CATALOG.get(key)


def require_field_definition(key: str) -> FieldDefinition:
    """
    Return the definition for a key.

    Raises:
        UnknownFieldError: key is not in the catalog
    """
    definition = FIELD_CATALOG.get(key)
    if definition is None:
        raise UnknownFieldError(f"Unknown field '{key}'")
    return definition


def field_label(key: str) -> str:
    """Display label for a key, falling back to the key itself."""
    definition = FIELD_CATALOG.get(key)
    return definition.label if definition else key


def field_question(key: str) -> str:
    """Follow-up question for a key."""
    definition = FIELD_CATALOG.get(key)
    return definition.follow_up_question if definition else f"{key}を入力してください。"


def known_field_keys() -> List[str]:
    """All catalog keys in declaration order."""
    return list(FIELD_CATALOG)
