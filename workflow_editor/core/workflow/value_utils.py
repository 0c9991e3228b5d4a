"""
노드 출력 값 유틸리티

점(.) 경로로 중첩 값을 조회하고, 값을 UI/병합용 문자열로 변환합니다.
"""

from __future__ import annotations

import json
import math
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


def get_nested_value(value: Any, path: Optional[str]) -> Optional[Any]:
    """
    dict/list의 중첩 값을 점(.) 경로로 조회

    Args:
        value: 조회 대상 값
        path: "data.items.0.name" 형식의 경로

    Returns:
        해석된 값, 경로가 없거나 중간에 끊기면 None

    Example:
        >>> get_nested_value({"data": {"items": [{"name": "a"}]}}, "data.items.0.name")
        'a'
    """
    if value is None or not path:
        return None

    current = value
    for attr in path.split("."):
        current = _resolve_nested_value(current, attr)
        if current is None:
            return None
    return current


def _resolve_nested_value(value: Any, attr: str) -> Optional[Any]:
    """dict 키와 배열 인덱스를 한 단계 순회"""
    if isinstance(value, dict):
        return value.get(attr)

    if isinstance(value, list):
        try:
            index = int(attr)
        except (TypeError, ValueError):
            logger.debug(f"List index must be integer, got '{attr}'")
            return None
        if index < 0 or index >= len(value):
            return None
        return value[index]

    return None


def stringify(value: Any) -> str:
    """
    값을 표시/병합용 문자열로 변환

    bool은 소문자(true/false), 정수 값 float는 소수점 없이,
    dict/list는 JSON으로 변환합니다.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)
