"""用户档案状态：本人档案与已保存的他人命盘。

命盘由排盘流程按固定参数生成（拆补法、转盘、不考虑真太阳时），
生成后写回对应档案。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from qimen_core.domain.exceptions import BusinessError
from qimen_core.domain.profile import PersonProfile, UserProfile
from qimen_core.domain.qimen import BIRTH_CHART_QUESTION_TYPE, Gender, QimenInput, QimenReport
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.infrastructure.storage.json_store import StateStorage
from qimen_core.qimen.calculator import QimenCalculator
from qimen_core.stores.base import PersistedStore

_PROFILE_FIELDS = ("name", "gender", "birth_date", "birth_chart")
_SAVED_PROFILE_FIELDS = ("name", "gender", "birth_date", "birth_chart", "relationship", "notes")


def birth_chart_input(gender: Gender, birth_date: datetime) -> QimenInput:
    return QimenInput.from_datetime(
        birth_date,
        gender=gender,
        question_type=BIRTH_CHART_QUESTION_TYPE,
        ju_model=0,
        pan_model=1,
        zhen=2,
    )


class UserStore(PersistedStore):
    namespace = "user-storage"
    version = 1

    def __init__(self, calculator: QimenCalculator, storage: Optional[StateStorage] = None):
        self._calculator = calculator
        super().__init__(storage)

    def _reset(self) -> None:
        self.profile = UserProfile()
        self.saved_profiles: List[PersonProfile] = []

    def to_state(self) -> Dict[str, Any]:
        return {
            "profile": self.profile.to_dict(),
            "saved_profiles": [p.to_dict() for p in self.saved_profiles],
        }

    def _rehydrate(self, state: Dict[str, Any]) -> None:
        self.profile = UserProfile.from_dict(state.get("profile") or {})
        self.saved_profiles = [PersonProfile.from_dict(p) for p in state.get("saved_profiles") or []]

    # ---- 本人档案 ----

    def update_profile(self, **changes: Any) -> UserProfile:
        for key, value in changes.items():
            if key not in _PROFILE_FIELDS:
                raise ValueError(f"Unknown profile field: {key}")
            setattr(self.profile, key, value)
        self._persist()
        return self.profile

    def generate_birth_chart(self) -> Optional[QimenReport]:
        """为本人档案（重新）生成命盘；没有出生时间时不做任何事。"""
        if self.profile.birth_date is None:
            return None
        report = self._calculate(self.profile.gender, self.profile.birth_date)
        if report is not None:
            self.profile.birth_chart = report
            self._persist()
        return report

    # ---- 已保存档案 ----

    def get_saved_profile(self, profile_id: str) -> Optional[PersonProfile]:
        return next((p for p in self.saved_profiles if p.id == profile_id), None)

    def add_saved_profile(
        self,
        name: str,
        gender: Gender,
        birth_date: datetime,
        relationship: str = "",
        notes: str = "",
    ) -> PersonProfile:
        """保存一份档案并同时计算命盘。"""
        profile = PersonProfile(
            name=name,
            gender=gender,
            birth_date=birth_date,
            relationship=relationship,
            notes=notes,
            birth_chart=self._calculate(gender, birth_date),
        )
        self.saved_profiles.append(profile)
        self._persist()
        return profile

    def update_saved_profile(self, profile_id: str, **changes: Any) -> Optional[PersonProfile]:
        profile = self.get_saved_profile(profile_id)
        if profile is None:
            return None
        for key, value in changes.items():
            if key not in _SAVED_PROFILE_FIELDS:
                raise ValueError(f"Unknown profile field: {key}")
            setattr(profile, key, value)
        self._persist()
        return profile

    def remove_saved_profile(self, profile_id: str) -> None:
        self.saved_profiles = [p for p in self.saved_profiles if p.id != profile_id]
        self._persist()

    def generate_profile_chart(self, profile_id: str) -> Optional[QimenReport]:
        profile = self.get_saved_profile(profile_id)
        if profile is None:
            return None
        report = self._calculate(profile.gender, profile.birth_date)
        if report is not None:
            profile.birth_chart = report
            self._persist()
        return report

    def _calculate(self, gender: Gender, birth_date: datetime) -> Optional[QimenReport]:
        try:
            return self._calculator.calculate(birth_chart_input(gender, birth_date))
        except BusinessError as e:
            logger.error("Failed to generate birth chart", extra={"extra": {"code": e.code, "error": e.message}})
            return None
