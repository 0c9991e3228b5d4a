"""
워크플로우 노드 기본 정의

노드 종류, 노드 상태, 종류별 분류(출력 노드, 포트 보유 노드)를 정의합니다.
스키마/그래프/실행기 모두 이 모듈을 기준으로 노드 종류를 판단합니다.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional
from pydantic import BaseModel, Field
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """노드 종류 열거형"""
    START = "start"
    API_ACTION = "apiAction"
    EMAIL_ACTION = "emailAction"
    DATABASE_ACTION = "databaseAction"
    SCRIPT_ACTION = "scriptAction"
    WEBHOOK_ACTION = "webhookAction"
    GOOGLE_CALENDAR_ACTION = "googleCalendarAction"
    GOOGLE_DOCS_ACTION = "googleDocsAction"
    CONDITION = "condition"
    CONSTANT = "constant"
    BRANCH = "branch"
    JOIN = "join"
    MERGE = "merge"
    TEMPLATE = "template"
    END = "end"
    # 하위 호환: 타입 없는 예전 액션 노드 (apiAction과 동일하게 취급)
    ACTION = "action"
    # 외부 시스템이 호출하는 트리거 (start와 같은 시작 노드)
    WEBHOOK_TRIGGER = "webhookTrigger"


class NodeStatus(str, Enum):
    """노드 실행 상태"""
    INITIAL = "initial"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


# 다른 노드가 출력을 바인딩할 수 있는 노드 종류
OUTPUT_PRODUCING_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.API_ACTION,
    NodeKind.ACTION,
    NodeKind.EMAIL_ACTION,
    NodeKind.DATABASE_ACTION,
    NodeKind.SCRIPT_ACTION,
    NodeKind.WEBHOOK_ACTION,
    NodeKind.GOOGLE_CALENDAR_ACTION,
    NodeKind.GOOGLE_DOCS_ACTION,
    NodeKind.WEBHOOK_TRIGGER,
})

# run_workflow 시작점
START_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.START,
    NodeKind.WEBHOOK_TRIGGER,
})

# 아직 실행기가 없는 노드 (네트워크 호출 없이 즉시 실패)
NOT_IMPLEMENTED_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.DATABASE_ACTION,
    NodeKind.SCRIPT_ACTION,
    NodeKind.WEBHOOK_ACTION,
})

# 출력 포트 목록을 직접 가지는 노드 (최소 1개)
OUTPUT_PORT_KINDS: FrozenSet[NodeKind] = frozenset({NodeKind.BRANCH})

# 입력 포트 목록을 직접 가지는 노드 (최소 2개)
INPUT_PORT_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.JOIN,
    NodeKind.MERGE,
    NodeKind.TEMPLATE,
})

MIN_OUTPUT_PORTS = 1
MIN_INPUT_PORTS = 2


class NodeExecutionResult(BaseModel):
    """단일 노드 실행 결과"""
    status: NodeStatus
    output: Optional[Any] = None
    error: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == NodeStatus.SUCCESS


def is_output_producing(kind: NodeKind) -> bool:
    """바인딩 후보가 되는 출력 노드인지 여부"""
    return kind in OUTPUT_PRODUCING_KINDS


def is_start_kind(kind: NodeKind) -> bool:
    return kind in START_KINDS
