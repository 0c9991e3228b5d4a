"""
연결 엔진

엣지 연결 요청을 수락/거부/변환하는 규칙을 적용합니다.
규칙은 아래 순서로 검사하며 처음 일치한 규칙이 결과를 결정합니다.

    1. 반대 방향 연결이 이미 있으면 그 엣지를 제거하고 요청한 방향으로 추가 (방향 뒤집기)
    2. 같은 (source, target) 쌍의 엣지가 있으면 조용히 무시 (포트는 비교하지 않음)
    3. 같은 (target, targetHandle)에 이미 연결된 엣지가 있으면 거부하고 경고 반환
    4. 그 외에는 새 엣지 추가
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional
import logging

from pydantic import BaseModel, Field

from workflow_editor.schemas.workflow import ConnectRequest, WorkflowEdge

logger = logging.getLogger(__name__)

OCCUPIED_PORT_WARNING = "이미 연결된 입력 포트입니다. 입력 포트는 하나의 연결만 받을 수 있습니다."


class ConnectAction(str, Enum):
    """연결 요청 처리 결과"""
    ADDED = "added"
    REVERSED = "reversed"
    DUPLICATE = "duplicate"
    OCCUPIED = "occupied"


class ConnectResult(BaseModel):
    """연결 요청 결과 (edges는 적용 후 전체 엣지 목록)"""
    edges: List[WorkflowEdge] = Field(default_factory=list)
    action: ConnectAction
    edge: Optional[WorkflowEdge] = Field(None, description="추가된 엣지")
    removed_edge: Optional[WorkflowEdge] = Field(None, description="방향 뒤집기로 제거된 엣지")
    warning: Optional[str] = Field(None, description="사용자에게 보여줄 경고")

    @property
    def accepted(self) -> bool:
        return self.action in (ConnectAction.ADDED, ConnectAction.REVERSED)


def make_edge_id(request: ConnectRequest) -> str:
    """
    엣지 ID 생성

    같은 (source, target) 쌍은 중복 연결이 거부되므로 노드/포트 조합으로 고유하다.
    """
    source_part = request.source + (f"-{request.source_handle}" if request.source_handle else "")
    target_part = request.target + (f"-{request.target_handle}" if request.target_handle else "")
    return f"edge-{source_part}__{target_part}"


def _is_port_occupied(edges: List[WorkflowEdge], target: str, target_handle: Optional[str]) -> bool:
    return any(
        edge.target == target and edge.target_handle == target_handle
        for edge in edges
    )


def _build_edge(request: ConnectRequest) -> WorkflowEdge:
    return WorkflowEdge(
        id=make_edge_id(request),
        source=request.source,
        source_handle=request.source_handle,
        target=request.target,
        target_handle=request.target_handle,
    )


def try_connect(edges: List[WorkflowEdge], request: ConnectRequest) -> ConnectResult:
    """
    연결 요청 적용

    입력 edges는 변경하지 않고 새 목록을 결과에 담아 반환합니다.

    Args:
        edges: 현재 엣지 목록
        request: 연결 요청

    Returns:
        ConnectResult: 적용 후 엣지 목록과 처리 결과
    """
    current = list(edges)

    reverse_index = next(
        (
            index for index, edge in enumerate(current)
            if edge.source == request.target and edge.target == request.source
        ),
        None,
    )
    if reverse_index is not None:
        removed = current[reverse_index]
        remaining = current[:reverse_index] + current[reverse_index + 1:]

        # 뒤집은 뒤에도 입력 포트당 하나의 연결만 허용
        if _is_port_occupied(remaining, request.target, request.target_handle):
            logger.info(
                f"[Connect] Reverse rejected, port occupied: "
                f"{request.target}:{request.target_handle}"
            )
            return ConnectResult(
                edges=current,
                action=ConnectAction.OCCUPIED,
                warning=OCCUPIED_PORT_WARNING,
            )

        new_edge = _build_edge(request)
        logger.info(f"[Connect] Reversed connection: {removed.source}->{removed.target} => {request.source}->{request.target}")
        return ConnectResult(
            edges=remaining + [new_edge],
            action=ConnectAction.REVERSED,
            edge=new_edge,
            removed_edge=removed,
        )

    if any(edge.source == request.source and edge.target == request.target for edge in current):
        logger.debug(f"[Connect] Duplicate connection ignored: {request.source}->{request.target}")
        return ConnectResult(edges=current, action=ConnectAction.DUPLICATE)

    if _is_port_occupied(current, request.target, request.target_handle):
        logger.info(f"[Connect] Port occupied: {request.target}:{request.target_handle}")
        return ConnectResult(
            edges=current,
            action=ConnectAction.OCCUPIED,
            warning=OCCUPIED_PORT_WARNING,
        )

    new_edge = _build_edge(request)
    logger.info(f"[Connect] Added edge {new_edge.id}")
    return ConnectResult(edges=current + [new_edge], action=ConnectAction.ADDED, edge=new_edge)
