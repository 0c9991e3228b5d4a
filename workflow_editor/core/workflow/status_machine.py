"""
노드 상태 머신

    initial -> loading -> {success, error}

success/error는 해당 실행의 최종 상태이며, 다시 trigger하면 loading으로,
실행 초기화(reset)하면 initial로 돌아갑니다.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional
import logging

from workflow_editor.core.exceptions import WorkflowError
from workflow_editor.core.workflow.base_node import NodeStatus
from workflow_editor.schemas.workflow import WorkflowNode

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[NodeStatus, FrozenSet[NodeStatus]] = {
    NodeStatus.INITIAL: frozenset({NodeStatus.LOADING}),
    # 동시에 같은 노드를 다시 trigger하면 loading 유지
    NodeStatus.LOADING: frozenset({NodeStatus.LOADING, NodeStatus.SUCCESS, NodeStatus.ERROR}),
    NodeStatus.SUCCESS: frozenset({NodeStatus.LOADING, NodeStatus.INITIAL}),
    NodeStatus.ERROR: frozenset({NodeStatus.LOADING, NodeStatus.INITIAL}),
}


class InvalidStatusTransitionError(WorkflowError):
    """허용되지 않은 노드 상태 전이"""
    def __init__(self, current: NodeStatus, target: NodeStatus, node_id: Optional[str] = None):
        super().__init__(
            f"노드 상태를 {current.value}에서 {target.value}(으)로 바꿀 수 없습니다",
            error_code="INVALID_STATUS_TRANSITION",
            details={"node_id": node_id, "current": current.value, "target": target.value},
        )


def can_transition(current: NodeStatus, target: NodeStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class NodeStatusMachine:
    """
    노드 상태 전이 적용기

    실행 시뮬레이터만 이 클래스를 통해 노드 상태를 바꿉니다.
    """

    def transition(self, node: WorkflowNode, target: NodeStatus) -> NodeStatus:
        """
        상태 전이 적용

        Returns:
            NodeStatus: 전이 이전 상태

        Raises:
            InvalidStatusTransitionError: 허용되지 않은 전이인 경우
        """
        previous = node.status
        if not can_transition(previous, target):
            raise InvalidStatusTransitionError(previous, target, node_id=node.id)

        node.status = target
        logger.info(
            f"Node {node.id} status: {target.value}",
            extra={
                "log_type": "node_status",
                "node_id": node.id,
                "previous_status": previous.value,
                "status": target.value,
            },
        )
        return previous

    def start(self, node: WorkflowNode) -> NodeStatus:
        return self.transition(node, NodeStatus.LOADING)

    def succeed(self, node: WorkflowNode) -> NodeStatus:
        return self.transition(node, NodeStatus.SUCCESS)

    def fail(self, node: WorkflowNode) -> NodeStatus:
        return self.transition(node, NodeStatus.ERROR)

    def reset(self, node: WorkflowNode) -> Optional[NodeStatus]:
        """
        initial로 초기화 (실행 중인 노드는 건드리지 않음)

        Returns:
            이전 상태, 초기화하지 않았으면 None
        """
        if node.status == NodeStatus.INITIAL:
            return None
        if node.status == NodeStatus.LOADING:
            logger.debug(f"Node {node.id} is loading, reset skipped")
            return None
        return self.transition(node, NodeStatus.INITIAL)
