"""
실행 취소/다시 실행 기록

그래프 스냅샷을 쌓아 두고 인덱스로 이동합니다. 기록 중간에서 새 상태를 기록하면
그 이후의 기록은 버립니다.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from workflow_editor.config import settings
from workflow_editor.core.workflow.graph import WorkflowGraph

logger = logging.getLogger(__name__)


# 실행 결과는 편집 기록의 비교 대상이 아님
_EXECUTION_FIELDS = {"status", "last_output", "last_error", "condition_result", "last_evaluation"}


def _snapshot_key(graph: WorkflowGraph) -> Dict[str, Any]:
    return {
        "nodes": [node.model_dump(mode="json", exclude=_EXECUTION_FIELDS) for node in graph],
        "edges": [edge.model_dump(mode="json") for edge in graph.edges],
    }


class EditHistory:
    """
    그래프 편집 기록

    Example:
        >>> history = EditHistory()
        >>> history.record(graph)
        >>> graph.add_node(NodeKind.END, NodePosition(x=0, y=0))
        >>> history.record(graph)
        >>> previous = history.undo()
    """

    def __init__(self, max_length: Optional[int] = None):
        self.max_length = max_length or settings.history_max_length
        self._entries: List[WorkflowGraph] = []
        self._keys: List[Dict[str, Any]] = []
        self._index = -1

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def record(self, graph: WorkflowGraph) -> bool:
        """
        현재 그래프 상태 기록

        Returns:
            기록했으면 True, 현재 위치의 상태와 같아서 건너뛰었으면 False
        """
        key = _snapshot_key(graph)
        if self._index >= 0 and self._keys[self._index] == key:
            return False

        del self._entries[self._index + 1:]
        del self._keys[self._index + 1:]
        self._entries.append(graph.copy())
        self._keys.append(key)

        if len(self._entries) > self.max_length:
            self._entries.pop(0)
            self._keys.pop(0)

        self._index = len(self._entries) - 1
        logger.debug(f"History recorded: {self._index + 1}/{len(self._entries)}")
        return True

    def undo(self) -> Optional[WorkflowGraph]:
        """이전 상태의 복사본 (없으면 None)"""
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index].copy()

    def redo(self) -> Optional[WorkflowGraph]:
        """다음 상태의 복사본 (없으면 None)"""
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index].copy()

    def clear(self) -> None:
        self._entries.clear()
        self._keys.clear()
        self._index = -1
