"""时间戳的生成与序列化。

持久化时统一使用 ISO 8601 字符串，UTC 时间以 "Z" 结尾；
出生时间等墙上时间（naive datetime）原样保存，不做时区换算。
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def bump(previous: datetime) -> datetime:
    """返回不早于 previous 的当前时间，保证 updated_at 单调不减。"""
    now = utcnow()
    return now if now >= previous else previous
