import tempfile
from datetime import datetime
from pathlib import Path

from qimen_core.domain.qimen import QimenReport
from qimen_core.infrastructure.storage.json_store import JsonStateStorage, MemoryStateStorage
from qimen_core.qimen.normalizer import mock_result
from qimen_core.stores.theme_store import ThemeStore
from qimen_core.stores.user_store import UserStore


class RecordingCalculator:
    def __init__(self):
        self.inputs = []

    def calculate(self, qimen_input):
        self.inputs.append(qimen_input)
        return QimenReport(input=qimen_input, result=mock_result(qimen_input))


def test_birth_chart_needs_birth_date():
    calculator = RecordingCalculator()
    store = UserStore(calculator, MemoryStateStorage())
    assert store.generate_birth_chart() is None
    assert calculator.inputs == []


def test_birth_chart_uses_fixed_parameters():
    calculator = RecordingCalculator()
    store = UserStore(calculator, MemoryStateStorage())
    store.update_profile(name="张三", gender="female", birth_date=datetime(1990, 8, 15, 6, 45))
    report = store.generate_birth_chart()

    qimen_input = calculator.inputs[0]
    assert qimen_input.question_type == "命盘"
    assert (qimen_input.ju_model, qimen_input.pan_model, qimen_input.zhen) == (0, 1, 2)
    assert (qimen_input.year, qimen_input.month, qimen_input.day, qimen_input.hours, qimen_input.minute) == (1990, 8, 15, 6, 45)
    assert qimen_input.gender == "female"
    assert store.profile.birth_chart is report


def test_saved_profiles_lifecycle():
    calculator = RecordingCalculator()
    store = UserStore(calculator, MemoryStateStorage())
    profile = store.add_saved_profile("李四", "male", datetime(1985, 1, 2, 3, 4), relationship="朋友")
    assert profile.birth_chart is not None
    assert profile.relationship == "朋友"
    assert profile.notes == ""

    store.update_saved_profile(profile.id, notes="老同学")
    assert store.get_saved_profile(profile.id).notes == "老同学"

    old_chart = profile.birth_chart
    new_chart = store.generate_profile_chart(profile.id)
    assert new_chart is not old_chart
    assert profile.birth_chart is new_chart

    store.remove_saved_profile(profile.id)
    assert store.saved_profiles == []
    assert store.generate_profile_chart(profile.id) is None


def test_profiles_persist():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = UserStore(RecordingCalculator(), JsonStateStorage(root=root))
        store.update_profile(name="王五", birth_date=datetime(2000, 2, 29, 23, 0))
        store.generate_birth_chart()
        saved = store.add_saved_profile("赵六", "female", datetime(1970, 7, 7, 7, 7))

        reloaded = UserStore(RecordingCalculator(), JsonStateStorage(root=root))
        assert reloaded.profile.name == "王五"
        assert reloaded.profile.birth_date == datetime(2000, 2, 29, 23, 0)
        assert reloaded.profile.birth_chart.input.question_type == "命盘"
        assert reloaded.get_saved_profile(saved.id).name == "赵六"


def test_malformed_profile_state_falls_back_to_defaults():
    storage = MemoryStateStorage()
    storage.write("user-storage", {"profile": "garbage", "saved_profiles": [{"name": "赵六"}]}, 1)
    store = UserStore(RecordingCalculator(), storage)
    assert store.profile.name == "用户"
    assert store.saved_profiles == []

    storage.write("user-storage", {"profile": {"name": "王五"}, "saved_profiles": ["garbage"]}, 1)
    store = UserStore(RecordingCalculator(), storage)
    assert store.profile.name == "用户"
    assert store.saved_profiles == []


def test_theme_preference():
    storage = MemoryStateStorage()
    store = ThemeStore(storage)
    assert store.theme == "system"
    assert store.resolve(system_prefers_dark=True) == "dark"
    assert store.resolve() == "light"

    store.set_theme("dark")
    assert ThemeStore(storage).theme == "dark"
    assert store.label == "深色模式"


def test_theme_rejects_unknown_values():
    storage = MemoryStateStorage()
    storage.write("qimen-theme-store", {"theme": "purple"}, 1)
    store = ThemeStore(storage)
    assert store.theme == "system"
