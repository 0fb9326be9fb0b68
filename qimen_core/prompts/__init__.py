"""系统提示词加载工具。

按角色和语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本，
用于构造 LLMMessage(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

PROMPT_FILES = {
    "qimen-analyst": "qimen_analyst_system.md",
}


def load_system_prompt(role: str = "qimen-analyst", locale: str = "zh") -> str:
    """根据角色和语言加载系统提示词文本，未知角色抛出 KeyError。"""

    fname = PROMPTS_DIR / locale / PROMPT_FILES[role]
    return fname.read_text(encoding="utf-8").strip()
