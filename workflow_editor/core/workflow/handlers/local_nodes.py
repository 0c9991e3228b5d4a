"""
로컬 노드 핸들러

외부 호출 없이 노드 자신과 입력 값만으로 출력을 계산하는 노드들
(start, webhookTrigger, constant, end, branch, join, merge, template)
"""

from __future__ import annotations

import re
import logging

from workflow_editor.core.workflow.base_node import NodeKind
from workflow_editor.core.workflow.constant_values import constant_output
from workflow_editor.core.workflow.handlers.base import (
    BaseNodeHandler,
    HandlerContext,
    HandlerResult,
)
from workflow_editor.core.workflow.node_defaults import default_ports
from workflow_editor.core.workflow.value_utils import stringify

logger = logging.getLogger(__name__)

_TEMPLATE_INPUT_PATTERN = re.compile(r"\$\{input(\d+)\}")
_MENTION_PATTERN = re.compile(
    r'<span[^>]*data-type="mention"[^>]*data-id="(input\d+)"[^>]*>[^<]*</span>',
    re.IGNORECASE,
)


class StartHandler(BaseNodeHandler):
    """시작 노드: config.value (없으면 True), 웹훅 트리거는 testPayload (없으면 {})"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        config = context.config
        if context.node.kind == NodeKind.WEBHOOK_TRIGGER:
            return HandlerResult(output=config.get("testPayload") or {})
        return HandlerResult(output=config.get("value") or True)


class ConstantHandler(BaseNodeHandler):
    """상수 노드: datetime은 실행 시점 기준으로 계산, richtext는 필요하면 일반 텍스트로 변환"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        return HandlerResult(output=constant_output(context.config))


class EndHandler(BaseNodeHandler):
    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        return HandlerResult(finished=True)


class PassThroughHandler(BaseNodeHandler):
    """branch/join: 입력 값을 그대로 전달"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        return HandlerResult(output=context.inputs.input)


class MergeHandler(BaseNodeHandler):
    """입력 포트 순서대로 값을 문자열로 이어 붙임"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        separator = context.config.get("separator")
        if separator is None:
            separator = ""

        port_ids = context.node.inputs or default_ports(NodeKind.MERGE)[0]
        slots = context.inputs.values_by_slot(port_ids)
        merged = separator.join(stringify(slots[index]) for index in sorted(slots))

        logger.debug(f"[Merge] {context.node_id}: {len(slots)} inputs -> {merged!r}")
        return HandlerResult(output=merged)


class TemplateHandler(BaseNodeHandler):
    """${inputN} (1부터) 자리표시자를 입력 값으로 치환, 값이 없으면 그대로 둠"""

    simulated = True

    async def handle(self, context: HandlerContext) -> HandlerResult:
        template = context.config.get("template") or ""
        port_ids = context.node.inputs or default_ports(NodeKind.TEMPLATE)[0]
        values = {index + 1: value for index, value in context.inputs.values_by_slot(port_ids).items()}

        # 에디터 멘션 태그를 ${inputN}으로 변환
        processed = _MENTION_PATTERN.sub(lambda m: "${" + m.group(1) + "}", template)

        def replace(match: re.Match) -> str:
            value = values.get(int(match.group(1)))
            return stringify(value) if value is not None else match.group(0)

        return HandlerResult(output=_TEMPLATE_INPUT_PATTERN.sub(replace, processed))
