"""
경로 추출기

샘플 JSON 값에서 바인딩 가능한 경로 목록(PathEntry)을 평탄화해 추출합니다.
배열은 동질적이라고 보고 첫 번째 원소만 순회하며, 깊이 제한으로 순회를 멈춥니다.
"""

from __future__ import annotations

from typing import Any, List
import logging

from workflow_editor.schemas.workflow import PathEntry, PathType
from workflow_editor.core.workflow.value_utils import stringify

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5
PREVIEW_MAX_LENGTH = 30


def extract_paths(value: Any, prefix: str = "", max_depth: int = DEFAULT_MAX_DEPTH) -> List[PathEntry]:
    """
    값에서 경로 목록 추출

    Args:
        value: 샘플 출력 (JSON 호환 값)
        prefix: 경로 접두사
        max_depth: 남은 순회 깊이 (0 이하이면 빈 목록)

    Returns:
        List[PathEntry]: 객체 키는 자식 순회 전에, 배열은 자신을 먼저 기록한 순서

    Example:
        >>> [e.path for e in extract_paths({"user": {"name": "kim"}, "tags": ["a"]})]
        ['user', 'user.name', 'tags', 'tags.0']
    """
    if max_depth <= 0:
        return []

    if value is None:
        return [PathEntry(path=prefix, type=PathType.NULL, preview="null")]

    if isinstance(value, list):
        entries = [PathEntry(path=prefix, type=PathType.ARRAY, preview=f"Array[{len(value)}]")]
        if value:
            entries.extend(extract_paths(value[0], _join(prefix, "0"), max_depth - 1))
        return entries

    if isinstance(value, dict):
        entries: List[PathEntry] = []
        for key, child in value.items():
            child_path = _join(prefix, str(key))
            if isinstance(child, dict):
                entries.append(PathEntry(path=child_path, type=PathType.OBJECT, preview="{...}"))
            entries.extend(extract_paths(child, child_path, max_depth - 1))
        return entries

    return [_scalar_entry(value, prefix)]


def _scalar_entry(value: Any, path: str) -> PathEntry:
    if isinstance(value, bool):
        return PathEntry(path=path, type=PathType.BOOLEAN, preview=stringify(value))
    if isinstance(value, (int, float)):
        return PathEntry(path=path, type=PathType.NUMBER, preview=stringify(value))
    if isinstance(value, str):
        return PathEntry(path=path, type=PathType.STRING, preview=value[:PREVIEW_MAX_LENGTH])

    # JSON 외 타입은 문자열로 취급
    logger.debug(f"Non-JSON value at '{path}': {type(value).__name__}")
    return PathEntry(path=path, type=PathType.STRING, preview=str(value)[:PREVIEW_MAX_LENGTH])


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key
