"""
노드 실행 핸들러 기본 인터페이스

핸들러는 노드 종류별 실행 로직을 담고, 실행 시뮬레이터(executor)가 노드 종류로 조회해 호출합니다.
핸들러는 노드 상태를 직접 바꾸지 않고 결과(HandlerResult)를 반환하거나 예외를 던집니다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import logging

from pydantic import BaseModel, Field

from workflow_editor.core.workflow.service_container import ServiceContainer
from workflow_editor.schemas.workflow import WorkflowEdge, WorkflowNode

if TYPE_CHECKING:
    from workflow_editor.core.workflow.graph import WorkflowGraph

logger = logging.getLogger(__name__)


class InputEntry(BaseModel):
    """들어오는 엣지 하나의 값"""
    edge: WorkflowEdge
    source_id: str
    value: Optional[Any] = None
    slot_key: Optional[str] = Field(None, description="소스의 targetField 또는 엣지의 targetHandle")


class NodeInputs:
    """
    노드로 들어오는 값 모음

    - entries: 엣지별 입력 값
    - input: targetField가 없는 마지막 입력 값
    """

    def __init__(self, entries: Optional[List[InputEntry]] = None):
        self.entries: List[InputEntry] = entries or []
        self.input: Optional[Any] = None

        for entry in self.entries:
            # targetField로 특정 필드를 채우는 입력은 기본 입력이 아님
            if entry.slot_key is None or entry.slot_key == entry.edge.target_handle:
                self.input = entry.value

    def values_by_slot(self, port_ids: List[str]) -> Dict[int, Any]:
        """포트 목록 기준 슬롯 인덱스(0부터)별 값 (값이 없는 입력은 제외)"""
        slots: Dict[int, Any] = {}
        for entry in self.entries:
            if entry.value is None or entry.slot_key not in port_ids:
                continue
            slots[port_ids.index(entry.slot_key)] = entry.value
        return slots


def source_value(node: WorkflowNode) -> Optional[Any]:
    """소스 노드가 제공하는 값 (마지막 출력, 없으면 설정의 value)"""
    if node.last_output is not None:
        return node.last_output
    return node.config.to_dict().get("value")


def collect_inputs(graph: "WorkflowGraph", node_id: str) -> NodeInputs:
    """들어오는 엣지를 훑어 NodeInputs 생성"""
    entries: List[InputEntry] = []
    for edge in graph.incoming_edges(node_id):
        source = graph.get_node(edge.source)
        if source is None:
            continue
        target_field = source.config.to_dict().get("targetField")
        entries.append(InputEntry(
            edge=edge,
            source_id=source.id,
            value=source_value(source),
            slot_key=target_field or edge.target_handle,
        ))
    return NodeInputs(entries)


class HandlerResult(BaseModel):
    """핸들러 실행 결과"""
    output: Optional[Any] = None
    condition_result: Optional[bool] = None
    last_evaluation: Optional[Dict[str, Any]] = None
    should_continue: bool = True
    finished: bool = False


class HandlerContext:
    """
    핸들러 실행 컨텍스트

    실행 대상 노드의 스냅샷, 그래프, 입력 값, 서비스 컨테이너를 담습니다.
    """

    def __init__(
        self,
        node: WorkflowNode,
        graph: "WorkflowGraph",
        inputs: NodeInputs,
        services: ServiceContainer,
    ):
        self.node = node
        self.graph = graph
        self.inputs = inputs
        self.services = services

    @property
    def node_id(self) -> str:
        return self.node.id

    @property
    def config(self) -> Dict[str, Any]:
        """camelCase dict 형태의 노드 설정"""
        return self.node.config.to_dict()

    def get_service(self, name: str) -> Optional[Any]:
        return self.services.get(name)


class BaseNodeHandler(ABC):
    """
    노드 종류별 실행 핸들러

    simulated가 True인 핸들러는 실제 백엔드 연동 전까지 executor가 정해진 시간만큼 기다린 뒤 실행합니다.
    """

    simulated: bool = False

    @abstractmethod
    async def handle(self, context: HandlerContext) -> HandlerResult:
        """
        노드 실행

        Raises:
            NodeExecutionError: 전제 조건 실패 (URL 누락 등)
            RemoteCallError: 외부 호출 실패
            NotImplementedNodeError: 아직 구현되지 않은 노드
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(simulated={self.simulated})"
