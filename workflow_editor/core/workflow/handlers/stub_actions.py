"""
아직 연동되지 않은 액션 노드 핸들러

- database/script/webhook 액션: 네트워크 호출 없이 즉시 "not implemented" 오류
- Google Calendar/Docs 액션: OAuth 연동은 백엔드가 담당하므로 대기 후 성공만 보고
"""

from __future__ import annotations

import logging

from workflow_editor.core.exceptions import NotImplementedNodeError
from workflow_editor.core.workflow.handlers.base import (
    BaseNodeHandler,
    HandlerContext,
    HandlerResult,
)

logger = logging.getLogger(__name__)


class NotImplementedActionHandler(BaseNodeHandler):
    """구현 예정 액션 (항상 실패)"""

    async def handle(self, context: HandlerContext) -> HandlerResult:
        kind = context.node.kind.value
        logger.warning(f"[NotImplemented] {context.node_id} ({kind}) 실행 요청")
        raise NotImplementedNodeError(
            f"{kind} is not implemented yet",
            details={"node_id": context.node_id, "kind": kind},
        )


class GoogleActionHandler(BaseNodeHandler):
    """Google Calendar/Docs 액션 (시뮬레이션)"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        operation = context.config.get("operation")
        logger.info(f"[GoogleAction] {context.node_id} simulated (operation={operation})")
        return HandlerResult()
