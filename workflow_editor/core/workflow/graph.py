"""
워크플로우 그래프 모델

노드/엣지 컬렉션과 변경 연산을 제공합니다.
모든 변경은 검증을 먼저 끝낸 뒤 한 번에 적용되므로, 실패한 연산은 그래프를 바꾸지 않습니다.
노드 상태(status)는 이 모듈에서 바꾸지 않으며 실행 시뮬레이터만 상태 머신을 통해 변경합니다.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional, Union
import logging

from pydantic import ValidationError as PydanticValidationError

from workflow_editor.core.exceptions import (
    InvalidInputError,
    NodeConfigError,
    NodeNotFoundError,
    PortConstraintError,
)
from workflow_editor.core.workflow.base_node import (
    NodeKind,
    INPUT_PORT_KINDS,
    OUTPUT_PORT_KINDS,
    MIN_INPUT_PORTS,
    MIN_OUTPUT_PORTS,
)
from workflow_editor.core.workflow import node_defaults
from workflow_editor.core.workflow.connection_engine import ConnectResult, try_connect
from workflow_editor.schemas.workflow import (
    ConnectRequest,
    NodeConfig,
    NodePosition,
    WorkflowEdge,
    WorkflowNode,
    parse_node_config,
)

logger = logging.getLogger(__name__)


class WorkflowGraph:
    """
    에디터 그래프

    노드는 삽입 순서를 유지하는 dict(id -> WorkflowNode), 엣지는 리스트로 관리합니다.

    Example:
        >>> graph = WorkflowGraph()
        >>> start_id = graph.add_node(NodeKind.START, NodePosition(x=0, y=0))
        >>> end_id = graph.add_node(NodeKind.END, NodePosition(x=200, y=0))
        >>> graph.connect(ConnectRequest(source=start_id, target=end_id)).accepted
        True
    """

    def __init__(
        self,
        nodes: Optional[List[WorkflowNode]] = None,
        edges: Optional[List[WorkflowEdge]] = None
    ):
        self._nodes: Dict[str, WorkflowNode] = {}
        self._edges: List[WorkflowEdge] = []

        for node in nodes or []:
            if node.id in self._nodes:
                raise InvalidInputError(f"중복된 노드 ID입니다: {node.id}")
            self._nodes[node.id] = node
        for edge in edges or []:
            self._edges.append(edge)

    # ========== 조회 ==========

    @property
    def nodes(self) -> List[WorkflowNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[WorkflowEdge]:
        return list(self._edges)

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> WorkflowNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(f"노드를 찾을 수 없습니다: {node_id}", details={"node_id": node_id})
        return node

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_edge(self, edge_id: str) -> Optional[WorkflowEdge]:
        return next((edge for edge in self._edges if edge.id == edge_id), None)

    def incoming_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [edge for edge in self._edges if edge.target == node_id]

    def outgoing_edges(self, node_id: str, source_handle: Optional[str] = None) -> List[WorkflowEdge]:
        return [
            edge for edge in self._edges
            if edge.source == node_id and (source_handle is None or edge.source_handle == source_handle)
        ]

    def __iter__(self) -> Iterator[WorkflowNode]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    # ========== 노드 연산 ==========

    def add_node(
        self,
        kind: Union[NodeKind, str],
        position: Union[NodePosition, Dict[str, float]],
        label: Optional[str] = None,
    ) -> str:
        """
        노드 추가 (종류별 기본 설정/포트 적용)

        Args:
            kind: 노드 종류
            position: 캔버스 위치
            label: 표시 이름 (없으면 "<종류> Node")

        Returns:
            str: 새 노드 ID
        """
        kind = NodeKind(kind)
        if not isinstance(position, NodePosition):
            position = NodePosition.model_validate(position)

        node_id = node_defaults.generate_node_id(kind)
        while node_id in self._nodes:
            node_id = node_defaults.generate_node_id(kind)

        inputs, outputs = node_defaults.default_ports(kind)
        node = WorkflowNode(
            id=node_id,
            kind=kind,
            position=position,
            label=label if label is not None else node_defaults.default_label(kind),
            config=node_defaults.default_config(kind),
            inputs=inputs,
            outputs=outputs,
        )
        self._nodes[node_id] = node
        logger.info(f"[Graph] Added node {node_id} ({kind.value})")
        return node_id

    def insert_node(self, node: WorkflowNode) -> None:
        """이미 만들어진 노드 삽입 (문서 로드/기록 복원용)"""
        if node.id in self._nodes:
            raise InvalidInputError(f"중복된 노드 ID입니다: {node.id}")
        self._nodes[node.id] = node

    def update_node_config(self, node_id: str, patch: Union[NodeConfig, Dict[str, Any], None]) -> bool:
        """
        노드 설정 전체 교체 (깊은 병합 아님)

        Returns:
            bool: 노드가 존재해 교체했으면 True, 없으면 False (no-op)

        Raises:
            NodeConfigError: 설정이 노드 종류의 스키마와 맞지 않는 경우
        """
        node = self._nodes.get(node_id)
        if node is None:
            logger.debug(f"[Graph] update_node_config ignored, node not found: {node_id}")
            return False

        try:
            config = parse_node_config(node.kind, patch)
        except PydanticValidationError as e:
            raise NodeConfigError(
                f"노드 설정이 올바르지 않습니다: {node_id}",
                details={"node_id": node_id, "errors": e.errors(include_url=False)},
            ) from e

        node.config = config
        logger.info(f"[Graph] Replaced config of {node_id}")
        return True

    def update_node_config_from_json(self, node_id: str, text: str) -> bool:
        """
        JSON 텍스트로 노드 설정 교체

        Raises:
            NodeConfigError: JSON 파싱 실패 또는 객체가 아닌 경우
        """
        try:
            patch = json.loads(text or "{}")
        except json.JSONDecodeError as e:
            raise NodeConfigError(
                "설정 JSON 형식이 올바르지 않습니다",
                details={"node_id": node_id, "position": e.pos},
            ) from e

        if not isinstance(patch, dict):
            raise NodeConfigError(
                "설정은 JSON 객체여야 합니다",
                details={"node_id": node_id},
            )
        return self.update_node_config(node_id, patch)

    def rename_node(self, node_id: str, label: str, description: Optional[str] = None) -> bool:
        """라벨/설명만 변경 (설정과 상태는 그대로)"""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.label = label
        if description is not None:
            node.description = description
        return True

    def move_node(self, node_id: str, position: Union[NodePosition, Dict[str, float]]) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.position = position if isinstance(position, NodePosition) else NodePosition.model_validate(position)
        return True

    def delete_node(self, node_id: str) -> bool:
        """
        노드 삭제 (연결된 모든 엣지 함께 제거, 멱등)

        Returns:
            bool: 실제로 삭제했으면 True
        """
        if node_id not in self._nodes:
            return False

        del self._nodes[node_id]
        before = len(self._edges)
        self._edges = [
            edge for edge in self._edges
            if edge.source != node_id and edge.target != node_id
        ]
        logger.info(f"[Graph] Deleted node {node_id} and {before - len(self._edges)} edges")
        return True

    # ========== 포트 연산 ==========

    def add_port(self, node_id: str) -> str:
        """
        포트 추가 (branch는 출력, join/merge/template은 입력)

        Returns:
            str: 새 포트 ID

        Raises:
            NodeNotFoundError: 노드가 없는 경우
            PortConstraintError: 포트 목록을 가지지 않는 노드 종류인 경우
        """
        node = self.require_node(node_id)

        if node.kind in OUTPUT_PORT_KINDS:
            ports = list(node.outputs or [])
            port_id = node_defaults.next_port_id(ports, node_defaults.OUTPUT_PORT_PREFIX)
            node.outputs = ports + [port_id]
        elif node.kind in INPUT_PORT_KINDS:
            ports = list(node.inputs or [])
            port_id = node_defaults.next_port_id(ports, node_defaults.INPUT_PORT_PREFIX)
            node.inputs = ports + [port_id]
        else:
            raise PortConstraintError(
                f"{node.kind.value} 노드는 포트를 추가할 수 없습니다",
                details={"node_id": node_id, "kind": node.kind.value},
            )

        logger.info(f"[Graph] Added port {port_id} to {node_id}")
        return port_id

    def remove_port(self, node_id: str, index: int) -> str:
        """
        포트 제거 (해당 포트에 연결된 엣지도 제거)

        Returns:
            str: 제거된 포트 ID

        Raises:
            NodeNotFoundError: 노드가 없는 경우
            InvalidInputError: 인덱스가 범위를 벗어난 경우
            PortConstraintError: 최소 포트 수를 밑도는 경우
        """
        node = self.require_node(node_id)

        if node.kind in OUTPUT_PORT_KINDS:
            ports, minimum, is_output = list(node.outputs or []), MIN_OUTPUT_PORTS, True
        elif node.kind in INPUT_PORT_KINDS:
            ports, minimum, is_output = list(node.inputs or []), MIN_INPUT_PORTS, False
        else:
            raise PortConstraintError(
                f"{node.kind.value} 노드는 포트를 제거할 수 없습니다",
                details={"node_id": node_id, "kind": node.kind.value},
            )

        if index < 0 or index >= len(ports):
            raise InvalidInputError(
                f"포트 인덱스가 범위를 벗어났습니다: {index}",
                details={"node_id": node_id, "index": index, "port_count": len(ports)},
            )
        if len(ports) <= minimum:
            raise PortConstraintError(
                f"{node.kind.value} 노드는 최소 {minimum}개의 포트가 필요합니다",
                details={"node_id": node_id, "minimum": minimum},
            )

        port_id = ports.pop(index)
        if is_output:
            node.outputs = ports
            self._edges = [
                edge for edge in self._edges
                if not (edge.source == node_id and edge.source_handle == port_id)
            ]
        else:
            node.inputs = ports
            self._edges = [
                edge for edge in self._edges
                if not (edge.target == node_id and edge.target_handle == port_id)
            ]

        logger.info(f"[Graph] Removed port {port_id} from {node_id}")
        return port_id

    # ========== 엣지 연산 ==========

    def connect(self, request: ConnectRequest) -> ConnectResult:
        """
        연결 요청 (연결 엔진 규칙 적용)

        Raises:
            NodeNotFoundError: source 또는 target 노드가 없는 경우
        """
        self.require_node(request.source)
        self.require_node(request.target)

        result = try_connect(self._edges, request)
        self._edges = list(result.edges)
        return result

    def delete_edge(self, edge_id: str) -> bool:
        """엣지 삭제 (멱등)"""
        before = len(self._edges)
        self._edges = [edge for edge in self._edges if edge.id != edge_id]
        return len(self._edges) != before

    # ========== 스냅샷 ==========

    def copy(self) -> "WorkflowGraph":
        """깊은 복사본 (실행 상태 포함)"""
        return WorkflowGraph(
            nodes=[node.model_copy(deep=True) for node in self._nodes.values()],
            edges=[edge.model_copy(deep=True) for edge in self._edges],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.model_dump(mode="json", by_alias=True) for node in self._nodes.values()],
            "edges": [edge.model_dump(mode="json", by_alias=True) for edge in self._edges],
        }

    def __repr__(self) -> str:
        return f"WorkflowGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"
