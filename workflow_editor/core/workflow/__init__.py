"""
워크플로우 에디터 엔진 패키지

노드/엣지 그래프 모델, 연결 규칙, 바인딩, 실행 시뮬레이터를 제공합니다.
"""

from workflow_editor.core.workflow.base_node import (
    NodeKind,
    NodeStatus,
    NodeExecutionResult,
    OUTPUT_PRODUCING_KINDS,
    START_KINDS,
)

__all__ = [
    'NodeKind',
    'NodeStatus',
    'NodeExecutionResult',
    'OUTPUT_PRODUCING_KINDS',
    'START_KINDS',
]
