"""
Placeholder parser / formatter

동적 바인딩을 실행 백엔드에 전달하는 `{{{...}}}` 문자열 형식을 다룬다.

    {{{input}}}            소스 노드 출력 전체
    {{{input.<path>}}}     소스 노드 출력의 하위 필드
    {{{_mapped.<alias>}}}  소스 노드 설정의 responseMapping 재노출 값
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Optional

from workflow_editor.core.workflow.value_utils import get_nested_value


INPUT_ROOT = "input"
MAPPED_ROOT = "_mapped"

_PLACEHOLDER_PATTERN = re.compile(r"\{\{\{\s*(input|_mapped)(?:\.([^{}\s]+?))?\s*\}\}\}")


@dataclass(frozen=True)
class PlaceholderRef:
    """파싱된 단일 placeholder."""

    root: str
    path: Optional[str] = None
    start: int = 0
    end: int = 0

    @property
    def mapped_alias(self) -> Optional[str]:
        if self.root == MAPPED_ROOT:
            return self.path
        if self.path and self.path.startswith(f"{MAPPED_ROOT}."):
            return self.path[len(MAPPED_ROOT) + 1:]
        return None

    @property
    def is_whole_output(self) -> bool:
        return self.root == INPUT_ROOT and not self.path

    def to_text(self) -> str:
        return format_placeholder(self.path if self.root == INPUT_ROOT else None, self.mapped_alias)


def format_placeholder(path: Optional[str] = None, mapped_alias: Optional[str] = None) -> str:
    """
    placeholder 문자열 생성

    `_mapped.<alias>` 형태의 path는 mapped placeholder로 변환한다.
    """
    if mapped_alias:
        return f"{{{{{{{MAPPED_ROOT}.{mapped_alias}}}}}}}"
    if path and path.startswith(f"{MAPPED_ROOT}."):
        return f"{{{{{{{path}}}}}}}"
    if not path:
        return f"{{{{{{{INPUT_ROOT}}}}}}}"
    return f"{{{{{{{INPUT_ROOT}.{path}}}}}}}"


def parse_placeholder(text: Any) -> Optional[PlaceholderRef]:
    """
    문자열 전체가 하나의 placeholder이면 파싱 결과를, 아니면 None을 반환한다.
    """
    if not isinstance(text, str):
        return None
    match = _PLACEHOLDER_PATTERN.fullmatch(text.strip())
    if not match:
        return None
    root, path = match.group(1), match.group(2)
    if root == MAPPED_ROOT and not path:
        return None
    return PlaceholderRef(root=root, path=path, start=0, end=len(text))


def find_placeholders(text: Any) -> List[PlaceholderRef]:
    """
    텍스트 안의 모든 placeholder를 등장 순서대로 반환한다.
    """
    if not isinstance(text, str):
        return []
    refs: List[PlaceholderRef] = []
    for match in _PLACEHOLDER_PATTERN.finditer(text):
        root, path = match.group(1), match.group(2)
        if root == MAPPED_ROOT and not path:
            continue
        refs.append(PlaceholderRef(root=root, path=path, start=match.start(), end=match.end()))
    return refs


def is_placeholder(text: Any) -> bool:
    return parse_placeholder(text) is not None


def resolve_placeholder(ref: PlaceholderRef, source_output: Any) -> Optional[Any]:
    """
    소스 노드 출력에 대해 placeholder 값을 해석한다.
    """
    if ref.mapped_alias:
        return get_nested_value(source_output, f"{MAPPED_ROOT}.{ref.mapped_alias}")
    if ref.is_whole_output:
        return source_output
    return get_nested_value(source_output, ref.path)
