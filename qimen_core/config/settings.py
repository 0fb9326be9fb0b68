"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
上游密钥只在服务端进程启动时读取一次，不会下发给客户端。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("QIMEN_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 排盘 API ----
    qimen_api_key: Optional[str] = Field(default=None, description="奇门遁甲排盘 API 密钥")
    qimen_api_url: str = Field(
        default="https://api.yuanfenju.com/index.php/v1/Liupan/qimendunjia",
        description="奇门遁甲排盘 API 地址",
    )

    # ---- OpenAI 兼容的对话 API ----
    openai_api_key: Optional[str] = Field(default=None, description="对话 API 密钥")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI 兼容 API 基础URL",
    )
    default_model: str = Field(default="deepseek-chat", description="默认对话模型")

    # ---- 客户端侧 ----
    proxy_base_url: str = Field(
        default="http://127.0.0.1:8000",
        description="客户端服务访问代理路由时使用的基础URL",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    max_history_messages: int = Field(default=10, ge=1, le=100, description="注入上下文的最大历史消息数")
    report_history_limit: int = Field(default=50, ge=1, description="保留的排盘报告数量")

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 服务 ----
    server_host: str = Field(default="127.0.0.1", description="代理服务监听地址")
    server_port: int = Field(default=8000, ge=1, le=65535, description="代理服务监听端口")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="允许跨域访问的来源",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("qimen_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
