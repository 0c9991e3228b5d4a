"""
Condition 핸들러

네트워크 호출 없이 조건을 평가합니다. 평가 결과와 상관없이 항상 성공하며,
shouldContinue가 False이면 run_workflow에서 이 노드 이후 분기를 멈춥니다.
"""

from __future__ import annotations

import logging

from workflow_editor.core.workflow.condition import evaluate_condition_config
from workflow_editor.core.workflow.handlers.base import (
    BaseNodeHandler,
    HandlerContext,
    HandlerResult,
)

logger = logging.getLogger(__name__)


class ConditionHandler(BaseNodeHandler):
    """
    조건 분기 노드

    config:
        {
            "operator": "equals" | "greaterThan" | ...,
            "passWhen": "true" | "false",
            "valueAMode": "static" | "dynamic",
            "valueAStatic": "...",
            "valueAPath": "data.count",
            ...
        }
    """

    async def handle(self, context: HandlerContext) -> HandlerResult:
        input_data = context.inputs.input
        evaluation = evaluate_condition_config(context.config, input_data)

        logger.info(
            f"[Condition] {context.node_id}: {evaluation['operator']}"
            f"({evaluation['a']!r}, {evaluation['b']!r}) -> {evaluation['result']} "
            f"(continue={evaluation['shouldContinue']})"
        )

        return HandlerResult(
            output=input_data if evaluation["shouldContinue"] else None,
            condition_result=evaluation["result"],
            last_evaluation=evaluation,
            should_continue=evaluation["shouldContinue"],
        )
