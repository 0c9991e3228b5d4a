"""
워크플로우 직렬화

에디터 그래프와 저장 백엔드 문서 형태를 서로 변환합니다.

    WorkflowNode.id      <-> nodes[].node_id
    WorkflowEdge.id      <-> connections[].connection_id
    WorkflowEdge.source  <-> connections[].source_node_id
    WorkflowEdge.target  <-> connections[].target_node_id

실행 상태(status, lastOutput 등)는 저장하지 않습니다.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from workflow_editor.core.exceptions import InvalidInputError, NodeConfigError
from workflow_editor.core.workflow.base_node import NodeKind
from workflow_editor.core.workflow.connection_engine import make_edge_id
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.core.workflow.node_defaults import default_label, generate_node_id
from workflow_editor.schemas.workflow import (
    ConnectRequest,
    NodePosition,
    PersistedConnection,
    PersistedNode,
    WorkflowDocument,
    WorkflowEdge,
    WorkflowNode,
)

logger = logging.getLogger(__name__)

# 저장된 노드에 종류가 없을 때 사용하는 종류
FALLBACK_NODE_KIND = NodeKind.ACTION


def node_to_persisted(node: WorkflowNode) -> PersistedNode:
    data: Dict[str, Any] = {
        "type": node.kind.value,
        "label": node.label,
        "description": node.description,
        "config": node.config.to_dict(),
    }
    if node.inputs is not None:
        data["inputs"] = list(node.inputs)
    if node.outputs is not None:
        data["outputs"] = list(node.outputs)

    return PersistedNode(
        node_id=node.id,
        type=node.kind.value,
        position=node.position.model_copy(),
        data=data,
    )


def edge_to_persisted(edge: WorkflowEdge) -> PersistedConnection:
    return PersistedConnection(
        connection_id=edge.id,
        source_node_id=edge.source,
        target_node_id=edge.target,
        source_handle=edge.source_handle,
        target_handle=edge.target_handle,
    )


def to_document(
    graph: WorkflowGraph,
    name: str,
    description: Optional[str] = None,
    is_active: bool = True,
    workflow_id: Optional[Union[int, str]] = None,
) -> WorkflowDocument:
    """그래프를 저장 문서로 변환"""
    return WorkflowDocument(
        id=workflow_id,
        name=name,
        description=description,
        is_active=is_active,
        nodes=[node_to_persisted(node) for node in graph],
        connections=[edge_to_persisted(edge) for edge in graph.edges],
    )


def _parse_kind(persisted: PersistedNode) -> NodeKind:
    raw_kind = persisted.data.get("type") or persisted.type
    if not raw_kind:
        return FALLBACK_NODE_KIND
    try:
        return NodeKind(raw_kind)
    except ValueError:
        raise InvalidInputError(
            f"알 수 없는 노드 종류입니다: {raw_kind}",
            details={"node_id": persisted.node_id, "type": raw_kind},
        )


def _parse_config(raw: Any, node_id: str) -> Any:
    """예전 문서는 config를 JSON 문자열로 저장한 경우가 있음"""
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise NodeConfigError(
                f"노드 설정 JSON을 해석할 수 없습니다: {e.msg}",
                details={"node_id": node_id},
            ) from e
    return raw


def persisted_to_node(persisted: PersistedNode) -> WorkflowNode:
    kind = _parse_kind(persisted)
    node_id = persisted.node_id or generate_node_id(kind)
    if not persisted.node_id:
        logger.warning(f"Persisted node without id, regenerated: {node_id}")

    data = persisted.data
    try:
        return WorkflowNode(
            id=node_id,
            kind=kind,
            position=persisted.position or NodePosition(x=0, y=0),
            label=data.get("label") or default_label(kind),
            description=data.get("description") or "",
            config=_parse_config(data.get("config"), node_id),
            inputs=data.get("inputs"),
            outputs=data.get("outputs"),
        )
    except PydanticValidationError as e:
        raise NodeConfigError(
            f"저장된 노드를 불러올 수 없습니다: {node_id}",
            details={"node_id": node_id, "errors": e.errors(include_url=False)},
        ) from e


def persisted_to_edge(persisted: PersistedConnection) -> WorkflowEdge:
    edge_id = persisted.connection_id or make_edge_id(ConnectRequest(
        source=persisted.source_node_id,
        source_handle=persisted.source_handle,
        target=persisted.target_node_id,
        target_handle=persisted.target_handle,
    ))
    return WorkflowEdge(
        id=edge_id,
        source=persisted.source_node_id,
        source_handle=persisted.source_handle,
        target=persisted.target_node_id,
        target_handle=persisted.target_handle,
    )


def from_document(document: Union[WorkflowDocument, Dict[str, Any]]) -> WorkflowGraph:
    """
    저장 문서를 그래프로 변환

    - ID가 없는 노드/연결은 새 ID를 생성
    - 존재하지 않는 노드를 가리키는 연결은 건너뜀

    Raises:
        InvalidInputError: 문서 형식이나 노드 종류가 올바르지 않은 경우
        NodeConfigError: 노드 설정을 해석할 수 없는 경우
    """
    if not isinstance(document, WorkflowDocument):
        try:
            document = WorkflowDocument.model_validate(document)
        except PydanticValidationError as e:
            raise InvalidInputError(
                "워크플로우 문서 형식이 올바르지 않습니다",
                details={"errors": e.errors(include_url=False)},
            ) from e

    nodes = [persisted_to_node(persisted) for persisted in document.nodes]
    node_ids = {node.id for node in nodes}

    edges = []
    for persisted in document.connections:
        if persisted.source_node_id not in node_ids or persisted.target_node_id not in node_ids:
            logger.warning(
                f"Dangling connection skipped: {persisted.source_node_id} -> {persisted.target_node_id}"
            )
            continue
        edges.append(persisted_to_edge(persisted))

    logger.debug(f"Loaded workflow document: {len(nodes)} nodes, {len(edges)} connections")
    return WorkflowGraph(nodes=nodes, edges=edges)


def document_payload(document: WorkflowDocument) -> Dict[str, Any]:
    """백엔드 요청 본문 (id 제외)"""
    return document.model_dump(mode="json", exclude={"id"})


def state_hash(graph: WorkflowGraph) -> str:
    """저장 대상 상태(노드 구성과 연결)의 해시. 실행 상태는 포함하지 않음"""
    payload = {
        "nodes": [node_to_persisted(node).model_dump(mode="json") for node in graph],
        "connections": [edge_to_persisted(edge).model_dump(mode="json") for edge in graph.edges],
    }
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
