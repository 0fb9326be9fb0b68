from typing import Any, Dict, Literal

from qimen_core.stores.base import PersistedStore

Theme = Literal["light", "dark", "system"]
THEMES = ("light", "dark", "system")

THEME_LABELS: Dict[str, str] = {
    "light": "浅色模式",
    "dark": "深色模式",
    "system": "跟随系统",
}


class ThemeStore(PersistedStore):
    """主题偏好。system 表示跟随系统，由 resolve() 换算成实际主题。"""

    namespace = "qimen-theme-store"
    version = 1

    def _reset(self) -> None:
        self.theme: Theme = "system"

    def to_state(self) -> Dict[str, Any]:
        return {"theme": self.theme}

    def _rehydrate(self, state: Dict[str, Any]) -> None:
        theme = state.get("theme", "system")
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self.theme = theme

    def set_theme(self, theme: Theme) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self.theme = theme
        self._persist()

    def resolve(self, system_prefers_dark: bool = False) -> Literal["light", "dark"]:
        if self.theme == "system":
            return "dark" if system_prefers_dark else "light"
        return self.theme

    @property
    def label(self) -> str:
        return THEME_LABELS[self.theme]
