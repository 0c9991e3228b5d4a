"""
바인딩 해석기

설정 필드 값이 정적 값인지, 연결된 상위 노드 출력({nodeId, path})을 참조하는 동적 값인지 해석하고
실행 백엔드가 읽는 placeholder 문자열을 만듭니다.

후보 입력은 현재 노드로 들어오는 엣지의 소스 노드에서만 만들어지므로
연결되지 않은 노드의 경로는 제시되지 않습니다.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from workflow_editor.config import settings
from workflow_editor.core.workflow.base_node import NodeKind, is_output_producing
from workflow_editor.core.workflow.path_extractor import extract_paths
from workflow_editor.core.workflow.placeholder import format_placeholder
from workflow_editor.schemas.workflow import (
    PathEntry,
    PathType,
    ResponseMappingEntry,
    WorkflowNode,
)

logger = logging.getLogger(__name__)

SCALAR_PATH_TYPES = (PathType.STRING, PathType.NUMBER, PathType.BOOLEAN)
CONSTANT_VALUE_PATH = "value"
ACTION_OUTPUT_FIELD = "input"


class SourcePath(BaseModel):
    """동적 바인딩의 소스 ({nodeId, path})"""
    model_config = ConfigDict(populate_by_name=True)

    node_id: Optional[str] = Field(None, alias="nodeId")
    path: str = Field("", description="소스 출력 내 경로 (빈 값이면 출력 전체)")


class AvailableInput(BaseModel):
    """현재 노드에 연결된 바인딩 후보"""
    node_id: str
    node_label: str
    node_kind: NodeKind
    target_field: str = Field(..., description="constant는 targetField, 액션 출력은 'input'")
    is_action_output: bool = False
    discovered_paths: List[PathEntry] = Field(default_factory=list)
    response_mapping: List[ResponseMappingEntry] = Field(default_factory=list)


class BindingResolution(BaseModel):
    """바인딩 해석 결과"""
    selected_input: Optional[AvailableInput] = None
    selectable_paths: List[PathEntry] = Field(default_factory=list)
    chosen_path: Optional[str] = None
    placeholder: Optional[str] = None


def _discovered_paths(node: WorkflowNode, max_depth: int) -> List[PathEntry]:
    """설정에 저장된 discoveredPaths 우선, 없으면 마지막 출력에서 추출"""
    stored = node.config.to_dict().get("discoveredPaths") or []
    entries: List[PathEntry] = []
    for raw in stored:
        try:
            entries.append(PathEntry.model_validate(raw))
        except PydanticValidationError:
            logger.debug(f"[Binding] Skipping invalid discovered path on {node.id}: {raw}")
    if entries:
        return entries
    if node.last_output is None:
        return []
    return extract_paths(node.last_output, max_depth=max_depth)


def list_available_inputs(graph: Any, node_id: str, max_depth: Optional[int] = None) -> List[AvailableInput]:
    """
    노드로 들어오는 엣지를 훑어 바인딩 후보 목록 생성

    Args:
        graph: WorkflowGraph
        node_id: 바인딩을 가진 노드 ID
        max_depth: 경로 추출 깊이 (기본값: settings.path_extractor_max_depth)

    Returns:
        List[AvailableInput]: 엣지 순서대로, 소스 노드당 최대 1개
    """
    depth = max_depth if max_depth is not None else settings.path_extractor_max_depth
    inputs: List[AvailableInput] = []
    seen = set()

    for edge in graph.incoming_edges(node_id):
        if edge.source in seen:
            continue
        source = graph.get_node(edge.source)
        if source is None:
            continue
        seen.add(source.id)
        config = source.config.to_dict()

        if source.kind == NodeKind.CONSTANT:
            target_field = config.get("targetField")
            if target_field:
                inputs.append(AvailableInput(
                    node_id=source.id,
                    node_label=source.label or "Constant",
                    node_kind=source.kind,
                    target_field=target_field,
                ))
            continue

        if is_output_producing(source.kind):
            inputs.append(AvailableInput(
                node_id=source.id,
                node_label=source.label or source.kind.value,
                node_kind=source.kind,
                target_field=ACTION_OUTPUT_FIELD,
                is_action_output=True,
                discovered_paths=_discovered_paths(source, depth),
                response_mapping=getattr(source.config, "response_mapping", None) or [],
            ))

    return inputs


def select_source(
    available_inputs: List[AvailableInput],
    source_node_id: Optional[str] = None
) -> Optional[AvailableInput]:
    """선택된 소스 노드 (지정이 없으면 첫 번째 액션 출력, 그것도 없으면 첫 후보)"""
    if source_node_id:
        return next((item for item in available_inputs if item.node_id == source_node_id), None)
    return next(
        (item for item in available_inputs if item.is_action_output),
        available_inputs[0] if available_inputs else None,
    )


def selectable_paths(available_input: Optional[AvailableInput], max_raw_paths: Optional[int] = None) -> List[PathEntry]:
    """
    소스 노드에서 고를 수 있는 경로 목록

    constant 소스는 "value" 하나, 액션 출력은 _mapped 별칭을 먼저, 그 다음 스칼라 원시 경로를 최대 N개.
    """
    if available_input is None:
        return []

    if available_input.node_kind == NodeKind.CONSTANT:
        return [PathEntry(path=CONSTANT_VALUE_PATH, type=PathType.CONSTANT, preview="The constant value")]

    limit = max_raw_paths if max_raw_paths is not None else settings.binding_max_raw_paths
    paths: List[PathEntry] = []

    for mapping in available_input.response_mapping:
        if mapping.alias and mapping.path:
            paths.append(PathEntry(
                path=f"_mapped.{mapping.alias}",
                type=PathType.MAPPED,
                preview=f"Mapped from: {mapping.path}",
            ))

    raw = [entry for entry in available_input.discovered_paths if entry.type in SCALAR_PATH_TYPES]
    paths.extend(raw[:limit])
    return paths


def binding_placeholder(available_input: AvailableInput, path: Optional[str] = None) -> str:
    """선택한 소스/경로의 placeholder 문자열"""
    if available_input.node_kind == NodeKind.CONSTANT:
        return format_placeholder(available_input.target_field)
    return format_placeholder(path or None)


def resolve_binding(
    is_dynamic: bool,
    source_path: Optional[SourcePath],
    available_inputs: List[AvailableInput],
    max_raw_paths: Optional[int] = None,
) -> BindingResolution:
    """
    필드 바인딩 해석

    Args:
        is_dynamic: 동적 바인딩 여부
        source_path: 선택된 {nodeId, path}
        available_inputs: list_available_inputs 결과
        max_raw_paths: 원시 경로 최대 개수

    Returns:
        BindingResolution: 선택 가능한 경로와 선택된 경로의 placeholder
    """
    if not is_dynamic:
        return BindingResolution()

    selected = select_source(available_inputs, source_path.node_id if source_path else None)
    if selected is None:
        return BindingResolution()

    chosen = source_path.path if source_path and source_path.path else None
    return BindingResolution(
        selected_input=selected,
        selectable_paths=selectable_paths(selected, max_raw_paths),
        chosen_path=chosen,
        placeholder=binding_placeholder(selected, chosen),
    )


class FieldBinding:
    """
    설정 필드 하나의 바인딩 상태

    동적 모드에서 후보가 정확히 하나이고 값이 비어 있으면 한 번 자동 선택합니다.
    자동 선택은 정적 모드로 돌아갈 때 다시 활성화되며,
    동적 모드 중 두 번째 소스가 연결되어도 기존 자동 선택은 유지됩니다.
    """

    def __init__(
        self,
        field_name: str,
        is_dynamic: bool = False,
        value: Optional[str] = None,
        source_path: Optional[SourcePath] = None
    ):
        self.field_name = field_name
        self.is_dynamic = is_dynamic
        self.value = value
        self.source_path = source_path
        self._auto_select_armed = True

    def set_dynamic(self, is_dynamic: bool) -> None:
        """정적/동적 전환 (정적으로 돌아가면 동적 선택을 비우고 자동 선택을 다시 활성화)"""
        if self.is_dynamic and not is_dynamic:
            self.value = None
            self.source_path = None
            self._auto_select_armed = True
        self.is_dynamic = is_dynamic

    def set_static(self, value: Any) -> None:
        self.set_dynamic(False)
        self.value = value

    def sync(self, available_inputs: List[AvailableInput]) -> bool:
        """
        후보 목록 반영 (자동 선택)

        Returns:
            bool: 이번 호출에서 자동 선택했으면 True
        """
        if not self.is_dynamic or not self._auto_select_armed:
            return False
        if len(available_inputs) != 1 or self.value:
            return False

        only = available_inputs[0]
        self._auto_select_armed = False
        path = CONSTANT_VALUE_PATH if only.node_kind == NodeKind.CONSTANT else ""
        self.source_path = SourcePath(node_id=only.node_id, path=path)
        self.value = binding_placeholder(only)
        logger.debug(f"[Binding] Auto-selected {only.node_id} for field '{self.field_name}'")
        return True

    def select_source(self, node_id: str) -> None:
        """소스 노드 변경 (다른 노드에서 경로가 유효하다고 가정하지 않으므로 경로 초기화)"""
        self.source_path = SourcePath(node_id=node_id, path="")
        self.value = None

    def select_path(self, path: str, available_inputs: List[AvailableInput]) -> Optional[str]:
        """
        선택된 소스에서 경로 선택

        Returns:
            새 placeholder 문자열 (소스를 찾지 못하면 None)
        """
        node_id = self.source_path.node_id if self.source_path else None
        selected = select_source(available_inputs, node_id)
        if selected is None:
            return None
        self.source_path = SourcePath(node_id=selected.node_id, path=path)
        self.value = binding_placeholder(selected, path)
        return self.value

    def resolve(self, available_inputs: List[AvailableInput], max_raw_paths: Optional[int] = None) -> BindingResolution:
        return resolve_binding(self.is_dynamic, self.source_path, available_inputs, max_raw_paths)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field_name,
            "isDynamic": self.is_dynamic,
            "value": self.value,
            "sourcePath": self.source_path.model_dump(by_alias=True) if self.source_path else None,
        }

    def __repr__(self) -> str:
        return f"FieldBinding({self.field_name}, dynamic={self.is_dynamic}, value={self.value!r})"
