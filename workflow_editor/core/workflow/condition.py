"""
조건 평가

condition 노드의 비교 연산을 수행합니다. 설정 값은 문자열로 저장되는 경우가 많으므로
느슨한 비교(equals)와 엄격한 비교(strictEquals)를 구분하고,
대소 비교는 앞부분 숫자만 읽는 parse_float 결과로 수행합니다 (숫자가 아니면 NaN, 비교는 항상 False).
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional
import logging

from workflow_editor.core.workflow.value_utils import get_nested_value, stringify

logger = logging.getLogger(__name__)

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")

SUPPORTED_OPERATORS = (
    "equals",
    "strictEquals",
    "notEquals",
    "greaterThan",
    "lessThan",
    "greaterOrEqual",
    "lessOrEqual",
    "contains",
    "isEmpty",
    "isNotEmpty",
    "isTrue",
    "isFalse",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_float(value: Any) -> float:
    """
    앞부분의 숫자만 읽어 float로 변환 (읽을 수 없으면 NaN)

    Example:
        >>> parse_float("12px")
        12.0
        >>> math.isnan(parse_float("abc"))
        True
    """
    if _is_number(value):
        return float(value)
    if value is None or isinstance(value, bool):
        return math.nan

    match = _FLOAT_PREFIX.match(stringify(value))
    if not match:
        return math.nan
    text = match.group(1)
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    return float(text)


def to_number(value: Any) -> float:
    """문자열 전체를 숫자로 변환 (빈 문자열은 0, 변환 불가면 NaN)"""
    if _is_number(value):
        return float(value)
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return math.nan


def _to_primitive(value: Any) -> Any:
    if isinstance(value, list):
        return ",".join("" if item is None else stringify(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return value


def loose_equals(a: Any, b: Any) -> bool:
    """타입 변환을 허용하는 동등 비교 ("5" == 5, true == 1)"""
    if a is None or b is None:
        return a is None and b is None

    if isinstance(a, (dict, list)) and isinstance(b, (dict, list)):
        return a is b
    if isinstance(a, (dict, list)):
        return loose_equals(_to_primitive(a), b)
    if isinstance(b, (dict, list)):
        return loose_equals(a, _to_primitive(b))

    if isinstance(a, bool) and isinstance(b, bool):
        return a == b
    if isinstance(a, bool):
        return loose_equals(1 if a else 0, b)
    if isinstance(b, bool):
        return loose_equals(a, 1 if b else 0)

    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if _is_number(a) or _is_number(b):
        return to_number(a) == to_number(b)
    return a == b


def strict_equals(a: Any, b: Any) -> bool:
    """타입까지 같은 경우에만 True"""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, (dict, list)) or isinstance(b, (dict, list)):
        return a is b
    return False


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def evaluate_condition(operator: str, a: Any, b: Any) -> bool:
    """
    연산자로 A, B 비교

    알 수 없는 연산자는 False를 반환합니다.
    """
    num_a = parse_float(a)
    num_b = parse_float(b)

    if operator == "equals":
        return loose_equals(a, b)
    if operator == "strictEquals":
        return strict_equals(a, b)
    if operator == "notEquals":
        return not loose_equals(a, b)
    if operator == "greaterThan":
        return num_a > num_b
    if operator == "lessThan":
        return num_a < num_b
    if operator == "greaterOrEqual":
        return num_a >= num_b
    if operator == "lessOrEqual":
        return num_a <= num_b
    if operator == "contains":
        return stringify(b) in stringify(a)
    if operator == "isEmpty":
        return _is_empty(a)
    if operator == "isNotEmpty":
        return not _is_empty(a)
    if operator == "isTrue":
        return a is True or a == "true" or (_is_number(a) and a == 1) or a == "1"
    if operator == "isFalse":
        return a is False or a == "false" or (_is_number(a) and a == 0) or a == "0"

    logger.warning(f"[Condition] Unknown operator: {operator}")
    return False


def resolve_operand(mode: Optional[str], static_value: Any, path: Optional[str], input_data: Any) -> Any:
    """
    비교 값 결정

    static 모드는 설정 값을, dynamic 모드는 입력 노드 출력의 path 값(경로가 없으면 출력 전체)을 사용합니다.
    """
    if (mode or "static") == "static":
        return static_value
    if path and isinstance(input_data, (dict, list)):
        return get_nested_value(input_data, path)
    return input_data


def evaluate_condition_config(config: Dict[str, Any], input_data: Any) -> Dict[str, Any]:
    """
    condition 노드 설정 평가

    Returns:
        {operator, a, b, result, passWhen, shouldContinue}
    """
    operator = config.get("operator") or "equals"
    pass_when = config.get("passWhen") or "true"
    if pass_when is True:
        pass_when = "true"

    a = resolve_operand(
        config.get("valueAMode"),
        config.get("valueAStatic") or "",
        config.get("valueAPath") or "",
        input_data,
    )
    b = resolve_operand(
        config.get("valueBMode"),
        config.get("valueBStatic") or "",
        config.get("valueBPath") or "",
        input_data,
    )

    result = evaluate_condition(operator, a, b)
    should_continue = (pass_when == "true" and result) or (pass_when == "false" and not result)

    return {
        "operator": operator,
        "a": a,
        "b": b,
        "result": result,
        "passWhen": pass_when,
        "shouldContinue": should_continue,
    }
