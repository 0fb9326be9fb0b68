"""命盘档案模型：用户本人与已保存的他人档案。"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from .qimen import Gender, QimenReport
from .timeutil import from_iso, to_iso


@dataclass
class UserProfile:
    """用户本人的档案，birth_chart 在需要时（重新）生成并缓存于此。"""

    name: str = "用户"
    gender: Gender = "male"
    birth_date: Optional[datetime] = None
    birth_chart: Optional[QimenReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "gender": self.gender,
            "birth_date": to_iso(self.birth_date),
            "birth_chart": self.birth_chart.to_dict() if self.birth_chart else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        chart = data.get("birth_chart")
        return cls(
            name=data.get("name") or "用户",
            gender=data.get("gender") or "male",
            birth_date=from_iso(data.get("birth_date")),
            birth_chart=QimenReport.from_dict(chart) if chart else None,
        )


@dataclass
class PersonProfile:
    """已保存的命盘档案（亲友等）。"""

    name: str
    gender: Gender
    birth_date: datetime
    id: str = field(default_factory=lambda: f"p-{uuid4().hex}")
    birth_chart: Optional[QimenReport] = None
    relationship: str = ""
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "birth_date": to_iso(self.birth_date),
            "birth_chart": self.birth_chart.to_dict() if self.birth_chart else None,
            "relationship": self.relationship,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonProfile":
        chart = data.get("birth_chart")
        return cls(
            id=data["id"],
            name=data["name"],
            gender=data.get("gender") or "male",
            birth_date=from_iso(data["birth_date"]),
            birth_chart=QimenReport.from_dict(chart) if chart else None,
            relationship=data.get("relationship") or "",
            notes=data.get("notes") or "",
        )
