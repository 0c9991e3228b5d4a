"""
상수 노드 값 계산

- datetime 타입: 실행 시점 기준으로 날짜/시간을 계산해 ISO 8601 문자열로 출력
- richtext 타입 + outputFormat=plaintext: 에디터 HTML을 일반 텍스트로 변환
"""

from __future__ import annotations

import html
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

OFFSET_UNITS = {
    "minutes": timedelta(minutes=1),
    "hours": timedelta(hours=1),
    "days": timedelta(days=1),
}


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _parse_fixed(raw: Any, now: datetime) -> datetime:
    if not raw:
        return now
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Invalid fixedDateTime {raw!r}, using current time")
        return now
    # 시간대가 없으면 UTC로 간주
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _custom_offset(config: Dict[str, Any]) -> timedelta:
    try:
        amount = int(config.get("offsetAmount") or 1)
    except (TypeError, ValueError):
        amount = 1
    unit = OFFSET_UNITS.get(config.get("offsetUnit") or "hours", OFFSET_UNITS["hours"])
    return amount * unit


def calculate_datetime(config: Dict[str, Any], now: Optional[datetime] = None) -> datetime:
    """
    datetimeOption에 따라 날짜/시간 계산

    Args:
        config: 상수 노드 설정 (datetimeOption, offsetAmount, offsetUnit, fixedDateTime)
        now: 기준 시각 (기본: 현재 UTC 시각)

    Returns:
        시간대 정보가 있는 datetime, 알 수 없는 옵션이면 기준 시각
    """
    now = now or datetime.now(timezone.utc)
    option = config.get("datetimeOption") or "now"

    if option == "today":
        return _start_of_day(now)
    if option == "tomorrow":
        return _start_of_day(now + timedelta(days=1))
    if option == "end_of_day":
        return now.replace(hour=23, minute=59, second=59, microsecond=0)
    if option == "custom_offset":
        return now + _custom_offset(config)
    if option == "fixed":
        return _parse_fixed(config.get("fixedDateTime"), now)

    offsets = {
        "next_week": timedelta(days=7),
        "next_month": timedelta(days=30),
        "in_1_hour": timedelta(hours=1),
        "in_2_hours": timedelta(hours=2),
        "in_30_min": timedelta(minutes=30),
    }
    return now + offsets.get(option, timedelta(0))


_FLAGS = re.IGNORECASE | re.DOTALL

_HTML_RULES = [
    (re.compile(r'<span[^>]*data-type="mention"[^>]*>([^<]*)</span>', _FLAGS), r"\1"),
    (re.compile(r"<h[1-3][^>]*>(.*?)</h[1-3]>", _FLAGS), "\n\\1\n\n"),
    (re.compile(r"<p[^>]*>(.*?)</p>", _FLAGS), "\\1\n\n"),
    (re.compile(r"<ul[^>]*>(.*?)</ul>", _FLAGS), None),
    (re.compile(r"<blockquote[^>]*>(.*?)</blockquote>", _FLAGS), "> \\1\n"),
    (re.compile(r"<pre[^>]*>(.*?)</pre>", _FLAGS), "```\n\\1\n```\n"),
    (re.compile(r"<code[^>]*>(.*?)</code>", _FLAGS), r"`\1`"),
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
]
_ORDERED_LIST = re.compile(r"<ol[^>]*>(.*?)</ol>", _FLAGS)
_LIST_ITEM = re.compile(r"<li[^>]*>(.*?)</li>", _FLAGS)
_TAG = re.compile(r"<[^>]+>")


def _number_items(match: re.Match) -> str:
    items = _LIST_ITEM.findall(match.group(1))
    return "".join(f"{index}. {item}\n" for index, item in enumerate(items, start=1))


def _bullet_items(match: re.Match) -> str:
    return "".join(f"• {item}\n" for item in _LIST_ITEM.findall(match.group(1)))


def html_to_plaintext(value: Optional[str]) -> str:
    """
    리치 텍스트 HTML을 일반 텍스트로 변환

    문단/제목은 빈 줄로, 목록은 "• " 또는 "1. "로, 멘션은 표시 이름으로 바꾸고
    나머지 태그는 제거합니다.

    Example:
        >>> html_to_plaintext("<p>안녕 <strong>세계</strong></p><ol><li>a</li><li>b</li></ol>")
        '안녕 세계\\n\\n1. a\\n2. b'
    """
    if not value:
        return ""

    text = _ORDERED_LIST.sub(_number_items, value)
    for pattern, replacement in _HTML_RULES:
        text = pattern.sub(replacement if replacement is not None else _bullet_items, text)
    # 목록 밖에 남은 li
    text = _LIST_ITEM.sub(lambda m: f"• {m.group(1)}\n", text)
    text = html.unescape(_TAG.sub("", text))

    text = re.sub(r"[ \t]+", " ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def constant_output(config: Dict[str, Any], now: Optional[datetime] = None) -> Any:
    """상수 노드 출력: valueType에 따라 계산된 값, 그 외에는 value 그대로"""
    value_type = config.get("valueType")
    if value_type == "datetime":
        return calculate_datetime(config, now).isoformat()
    if value_type == "richtext" and (config.get("outputFormat") or "html") == "plaintext":
        return html_to_plaintext(config.get("value"))
    return config.get("value")
