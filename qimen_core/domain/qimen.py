"""奇门遁甲排盘相关的领域模型。

- QimenInput: 一次排盘请求的参数（提交后不可变）。
- QimenResult: 由上游排盘 JSON 归一化得到的结果（四盘各 9 宫）。
- QimenReport: 输入 + 结果 + 生成时间，可被多个会话/命盘共享引用。
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple
from uuid import uuid4

from .timeutil import from_iso, to_iso, utcnow


Gender = Literal["male", "female"]

# 九宫固定顺序，四盘数组均按此顺序对齐
PALACE_ORDER: Tuple[str, ...] = ("坎", "艮", "震", "巽", "离", "坤", "兑", "乾", "中")
PALACE_COUNT = len(PALACE_ORDER)

QUESTION_TYPES: Dict[str, str] = {
    "general": "综合运势",
    "career": "事业财运",
    "relationship": "感情婚姻",
    "health": "健康状况",
    "study": "学业考试",
}

BIRTH_CHART_QUESTION_TYPE = "命盘"


@dataclass(frozen=True)
class QimenInput:
    """排盘输入。

    - moment: 起局时间；若提供，year/month/day/hours/minute 以它为准。
    - ju_model: 起局方法（0 拆补法，1 置闰法，2 茅山道人法）。
    - pan_model: 盘类型（0 飞盘奇门，1 转盘奇门）。
    - fei_pan_model: 飞盘排法（1 全部顺排，2 阴顺阳逆），仅 pan_model=0 时发送。
    - zhen: 真太阳时（1 考虑，2 不考虑）；为 1 时必须提供 province/city。
    """

    gender: Gender
    question_type: str
    year: int
    month: int
    day: int
    hours: int
    minute: int
    moment: Optional[datetime] = None
    question: Optional[str] = None
    ju_model: int = 0
    pan_model: int = 1
    fei_pan_model: Optional[int] = None
    zhen: int = 2
    province: Optional[str] = None
    city: Optional[str] = None

    @classmethod
    def from_datetime(cls, moment: datetime, gender: Gender, question_type: str, **options) -> "QimenInput":
        return cls(
            gender=gender,
            question_type=question_type,
            year=moment.year,
            month=moment.month,
            day=moment.day,
            hours=moment.hour,
            minute=moment.minute,
            moment=moment,
            **options,
        )

    def with_moment_fields(self) -> "QimenInput":
        """按 moment 重算日历字段；没有 moment 时原样返回。"""
        if self.moment is None:
            return self
        return replace(
            self,
            year=self.moment.year,
            month=self.moment.month,
            day=self.moment.day,
            hours=self.moment.hour,
            minute=self.moment.minute,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gender": self.gender,
            "question_type": self.question_type,
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "hours": self.hours,
            "minute": self.minute,
            "moment": to_iso(self.moment),
            "question": self.question,
            "ju_model": self.ju_model,
            "pan_model": self.pan_model,
            "fei_pan_model": self.fei_pan_model,
            "zhen": self.zhen,
            "province": self.province,
            "city": self.city,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QimenInput":
        return cls(
            gender=data["gender"],
            question_type=data["question_type"],
            year=int(data["year"]),
            month=int(data["month"]),
            day=int(data["day"]),
            hours=int(data["hours"]),
            minute=int(data["minute"]),
            moment=from_iso(data.get("moment")),
            question=data.get("question"),
            ju_model=int(data.get("ju_model", 0)),
            pan_model=int(data.get("pan_model", 1)),
            fei_pan_model=data.get("fei_pan_model"),
            zhen=int(data.get("zhen", 2)),
            province=data.get("province"),
            city=data.get("city"),
        )


@dataclass(frozen=True)
class BasicInfo:
    gongli: str
    nongli: str
    sizhu: str
    zhifu: str
    zhishi: str
    dunju: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "gongli": self.gongli,
            "nongli": self.nongli,
            "sizhu": self.sizhu,
            "zhifu": self.zhifu,
            "zhishi": self.zhishi,
            "dunju": self.dunju,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BasicInfo":
        return cls(**{k: str(data.get(k, "")) for k in ("gongli", "nongli", "sizhu", "zhifu", "zhishi", "dunju")})


@dataclass(frozen=True)
class QimenResult:
    """归一化后的排盘结果。四个盘面数组恒为 9 项，按 PALACE_ORDER 对齐。"""

    tianpan: Tuple[str, ...]
    dipan: Tuple[str, ...]
    renpan: Tuple[str, ...]
    shenpan: Tuple[str, ...]
    analysis: str
    suggestions: Tuple[str, ...]
    basic_info: BasicInfo
    detailed_info: str

    def __post_init__(self) -> None:
        for name in ("tianpan", "dipan", "renpan", "shenpan"):
            plate = getattr(self, name)
            if len(plate) != PALACE_COUNT:
                raise ValueError(f"{name} must have {PALACE_COUNT} entries, got {len(plate)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tianpan": list(self.tianpan),
            "dipan": list(self.dipan),
            "renpan": list(self.renpan),
            "shenpan": list(self.shenpan),
            "analysis": self.analysis,
            "suggestions": list(self.suggestions),
            "basic_info": self.basic_info.to_dict(),
            "detailed_info": self.detailed_info,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QimenResult":
        return cls(
            tianpan=tuple(data["tianpan"]),
            dipan=tuple(data["dipan"]),
            renpan=tuple(data["renpan"]),
            shenpan=tuple(data["shenpan"]),
            analysis=data.get("analysis") or "",
            suggestions=tuple(data.get("suggestions") or ()),
            basic_info=BasicInfo.from_dict(data.get("basic_info") or {}),
            detailed_info=data.get("detailed_info") or "",
        )


@dataclass(frozen=True)
class QimenReport:
    input: QimenInput
    result: QimenResult
    id: str = field(default_factory=lambda: f"r-{uuid4().hex}")
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def title(self) -> str:
        return f"{self.result.basic_info.gongli} - {self.input.question_type}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "input": self.input.to_dict(),
            "result": self.result.to_dict(),
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QimenReport":
        return cls(
            id=data["id"],
            input=QimenInput.from_dict(data["input"]),
            result=QimenResult.from_dict(data["result"]),
            timestamp=from_iso(data.get("timestamp")) or utcnow(),
        )


def reports_from_list(items: Optional[List[Dict[str, Any]]]) -> List[QimenReport]:
    return [QimenReport.from_dict(item) for item in items or []]
