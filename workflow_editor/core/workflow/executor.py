"""
워크플로우 실행 시뮬레이터

에디터에서 노드 단위로 실행(trigger)하거나, 시작 노드부터 너비 우선으로 전체 실행합니다.
노드 상태는 이 모듈만 상태 머신을 통해 바꿉니다.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set
import logging

from workflow_editor.config import settings
from workflow_editor.core.exceptions import (
    RemoteCallError,
    WorkflowAlreadyRunningError,
    WorkflowValidationError,
)
from workflow_editor.core.workflow.base_node import (
    NodeExecutionResult,
    NodeStatus,
    is_start_kind,
)
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.core.workflow.handler_registry import HandlerRegistry, handler_registry
from workflow_editor.core.workflow.handlers.base import (
    HandlerContext,
    HandlerResult,
    collect_inputs,
)
from workflow_editor.core.workflow.service_container import ServiceContainer
from workflow_editor.core.workflow.status_machine import NodeStatusMachine
from workflow_editor.schemas.workflow import WorkflowNode

logger = logging.getLogger(__name__)

# (node_id, status) -> None
StatusCallback = Callable[[str, NodeStatus], Any]


@dataclass
class _RunState:
    """전체 실행 한 번의 진행 상황"""
    results: Dict[str, NodeExecutionResult] = field(default_factory=dict)
    path: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class WorkflowExecutor:
    """
    실행 시뮬레이터

    Example:
        >>> executor = WorkflowExecutor(graph, delay_seconds=0)
        >>> result = await executor.trigger("apiAction_1a2b3c")
        >>> result.status
        <NodeStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        graph: WorkflowGraph,
        services: Optional[ServiceContainer] = None,
        registry: Optional[HandlerRegistry] = None,
        delay_seconds: Optional[float] = None,
        status_machine: Optional[NodeStatusMachine] = None,
    ):
        self.graph = graph
        self.services = services or ServiceContainer()
        self.registry = registry if registry is not None else handler_registry
        self.delay_seconds = (
            settings.simulated_node_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.status_machine = status_machine or NodeStatusMachine()
        self._callbacks: Dict[str, List[StatusCallback]] = defaultdict(list)
        self._running = False

    # ========== 상태 변경 콜백 ==========

    def on_status_change(self, node_id: str, callback: StatusCallback) -> Callable[[], None]:
        """
        노드 상태 변경 구독

        Returns:
            구독 해제 함수
        """
        self._callbacks[node_id].append(callback)

        def unsubscribe() -> None:
            callbacks = self._callbacks.get(node_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._callbacks[node_id]

        return unsubscribe

    def clear_callbacks(self, node_id: Optional[str] = None) -> None:
        if node_id is None:
            self._callbacks.clear()
        else:
            self._callbacks.pop(node_id, None)

    def _notify(self, node: WorkflowNode) -> None:
        for callback in list(self._callbacks.get(node.id, [])):
            try:
                callback(node.id, node.status)
            except Exception as e:
                logger.error(f"Status callback failed for node {node.id}: {e}", exc_info=True)

    # ========== 단일 노드 실행 ==========

    async def trigger(self, node_id: str) -> Optional[NodeExecutionResult]:
        """
        노드 하나 실행

        1. 즉시 loading으로 전이 (비동기 작업 전)
        2. 노드 종류별 핸들러 실행
        3. 성공하면 success + lastOutput, 예외가 나면 error + lastError

        예외는 밖으로 전파되지 않습니다. 존재하지 않는 노드는 무시하고 None을 반환합니다.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            logger.debug(f"Trigger ignored, node not found: {node_id}")
            return None

        self.status_machine.start(node)
        self._notify(node)

        started_at = time.perf_counter()
        try:
            handler = self.registry.create_handler(node.kind)
            if handler.simulated and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

            context = HandlerContext(
                node=node,
                graph=self.graph,
                inputs=collect_inputs(self.graph, node_id),
                services=self.services,
            )
            result = await handler.handle(context)

        except RemoteCallError as e:
            error = e.payload if e.payload is not None else e.message
            logger.warning(f"Node {node_id} remote call failed: {e.message}")
            return self._settle_error(node_id, error, started_at)

        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            if isinstance(e, (KeyError, TypeError, AttributeError)):
                logger.error(f"Node {node_id} failed unexpectedly: {message}", exc_info=True)
            else:
                logger.warning(f"Node {node_id} failed: {message}")
            return self._settle_error(node_id, message, started_at)

        return self._settle_success(node_id, result, started_at)

    async def trigger_many(self, node_ids: List[str]) -> List[Optional[NodeExecutionResult]]:
        """여러 노드를 동시에 실행 (완료 순서는 보장하지 않음)"""
        return list(await asyncio.gather(*(self.trigger(node_id) for node_id in node_ids)))

    def _current_loading_node(self, node_id: str) -> Optional[WorkflowNode]:
        """
        실행이 끝난 시점의 노드 조회

        실행 중 노드가 삭제되었으면 None. 같은 노드에 대한 다른 실행이 먼저 끝났으면 다시 loading으로 맞춘다.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            logger.debug(f"Node {node_id} was removed while running, result dropped")
            return None
        if node.status != NodeStatus.LOADING:
            self.status_machine.start(node)
        return node

    def _settle_success(self, node_id: str, result: HandlerResult, started_at: float) -> NodeExecutionResult:
        elapsed = time.perf_counter() - started_at
        metadata = {
            "node_id": node_id,
            "elapsed": elapsed,
            "should_continue": result.should_continue,
            "finished": result.finished,
        }

        node = self._current_loading_node(node_id)
        if node is None:
            metadata["stale"] = True
            return NodeExecutionResult(status=NodeStatus.SUCCESS, output=result.output, metadata=metadata)

        node.last_output = result.output
        node.last_error = None
        if result.condition_result is not None:
            node.condition_result = result.condition_result
        if result.last_evaluation is not None:
            node.last_evaluation = result.last_evaluation

        self.status_machine.succeed(node)
        self._notify(node)
        logger.info(f"Node {node_id} ({node.kind.value}) succeeded in {elapsed:.3f}s")
        return NodeExecutionResult(status=NodeStatus.SUCCESS, output=result.output, metadata=metadata)

    def _settle_error(self, node_id: str, error: Any, started_at: float) -> NodeExecutionResult:
        metadata = {"node_id": node_id, "elapsed": time.perf_counter() - started_at}

        node = self._current_loading_node(node_id)
        if node is None:
            metadata["stale"] = True
            return NodeExecutionResult(status=NodeStatus.ERROR, error=error, metadata=metadata)

        node.last_error = error
        self.status_machine.fail(node)
        self._notify(node)
        return NodeExecutionResult(status=NodeStatus.ERROR, error=error, metadata=metadata)

    # ========== 실행 초기화 ==========

    def reset_execution(self) -> int:
        """
        모든 노드를 initial로 되돌리고 실행 결과를 지움

        실행 중(loading)인 노드는 건드리지 않으며, 해당 실행은 정상적으로 끝납니다.

        Returns:
            초기화된 노드 수
        """
        count = 0
        for node in self.graph:
            if node.status == NodeStatus.LOADING:
                continue
            previous = self.status_machine.reset(node)
            node.last_output = None
            node.last_error = None
            node.condition_result = None
            node.last_evaluation = None
            if previous is not None:
                count += 1
                self._notify(node)

        logger.info(f"Execution reset: {count} nodes")
        return count

    # ========== 전체 실행 ==========

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_workflow(self) -> List[str]:
        """
        시작 노드부터 너비 우선으로 도달 가능한 노드를 한 번씩 실행

        - 실행 전 이전 실행 결과를 초기화
        - 시작 노드가 아닌 노드는 아직 실행되지 않은 상위 노드(입력 제공자)를 먼저 실행
        - condition의 shouldContinue가 False면 해당 분기 중단
        - 실패한 노드(또는 실패한 상위 노드)는 자기 분기만 중단

        Returns:
            실행된 노드 ID 순서

        Raises:
            WorkflowAlreadyRunningError: 이전 전체 실행이 끝나지 않은 경우
            WorkflowValidationError: 시작 노드가 없는 경우
        """
        if self._running:
            raise WorkflowAlreadyRunningError()

        start_ids = [node.id for node in self.graph if is_start_kind(node.kind)]
        if not start_ids:
            raise WorkflowValidationError("시작 노드가 없습니다. Start 노드를 추가하세요.")

        self._running = True
        try:
            self.reset_execution()
            return await self._run_from(start_ids)
        finally:
            self._running = False

    async def _run_from(self, start_ids: List[str]) -> List[str]:
        logger.info(f"Workflow run started from {start_ids}")
        started_at = time.perf_counter()
        run = _RunState()

        queue = deque(start_ids)
        visited: Set[str] = set()

        while queue:
            node_id = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)

            node = self.graph.get_node(node_id)
            if node is None:
                continue

            if not is_start_kind(node.kind) and not await self._run_dependencies(node_id, run, frozenset()):
                logger.info(f"Branch stopped, an input of {node_id} failed")
                continue

            result = run.results.get(node_id)
            if result is None:
                result = await self._run_node(node_id, run)
            if result is None or not result.succeeded:
                continue
            if result.metadata.get("should_continue") is False:
                logger.info(f"Branch stopped at condition {node_id}")
                continue

            for edge in self.graph.outgoing_edges(node_id):
                if edge.target not in visited:
                    queue.append(edge.target)

        elapsed = time.perf_counter() - started_at
        logger.info(
            f"Workflow run finished: {len(run.path)} nodes, {len(run.failed)} failed",
            extra={
                "log_type": "workflow_run",
                "execution_path": run.path,
                "failed_nodes": run.failed,
                "elapsed": elapsed,
            },
        )
        return run.path

    async def _run_node(self, node_id: str, run: _RunState) -> Optional[NodeExecutionResult]:
        result = await self.trigger(node_id)
        if result is None:
            return None
        run.results[node_id] = result
        run.path.append(node_id)
        if not result.succeeded:
            run.failed.append(node_id)
        return result

    async def _run_dependencies(self, node_id: str, run: _RunState, chain: FrozenSet[str]) -> bool:
        """
        아직 실행되지 않은 상위 노드를 재귀적으로 먼저 실행

        시작 노드, 이번 실행에서 이미 실행된 노드, 순환 경로의 노드는 건너뜁니다.

        Returns:
            상위 노드가 모두 성공했으면 True
        """
        chain = chain | {node_id}
        for edge in self.graph.incoming_edges(node_id):
            source = self.graph.get_node(edge.source)
            if source is None or source.id in chain or is_start_kind(source.kind):
                continue
            if source.id in run.results:
                if not run.results[source.id].succeeded:
                    return False
                continue
            if not await self._run_dependencies(source.id, run, chain):
                return False
            result = await self._run_node(source.id, run)
            if result is None or not result.succeeded:
                return False
        return True

    async def aclose(self) -> None:
        """서비스 컨테이너에 생성된 비동기 리소스 정리"""
        for name, service in self.services.created_instances().items():
            close = getattr(service, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"Failed to close service {name}: {e}")
