"""
Email Action 핸들러
백엔드 이메일 발송 엔드포인트에 {template, recipients, subject, customData}를 전달
"""
import logging

from workflow_editor.core.exceptions import NodeExecutionError
from workflow_editor.core.workflow.handlers.base import (
    BaseNodeHandler,
    HandlerContext,
    HandlerResult,
)
from workflow_editor.core.workflow.service_container import EMAIL_SERVICE, HTTP_CLIENT
from workflow_editor.services.email_service import EmailSendRequest, EmailService

logger = logging.getLogger(__name__)


class EmailActionHandler(BaseNodeHandler):
    """이메일 발송 노드"""

    async def handle(self, context: HandlerContext) -> HandlerResult:
        config = context.config
        if not config:
            raise NodeExecutionError("Email Action requires a configuration")
        if not config.get("template"):
            raise NodeExecutionError("Email Action requires a template", details={"field": "template"})
        if not config.get("recipients"):
            raise NodeExecutionError(
                "Email Action requires at least one recipient", details={"field": "recipients"}
            )

        request = EmailSendRequest(
            template=config["template"],
            recipients=config["recipients"],
            subject=config.get("subject"),
            custom_data=config.get("customData") or {},
        )

        service = context.get_service(EMAIL_SERVICE)
        if service is not None:
            result = await service.send(request)
        else:
            async with EmailService(client=context.get_service(HTTP_CLIENT)) as email_service:
                result = await email_service.send(request)

        logger.info(f"[EmailAction] 발송 완료: node={context.node_id}")
        return HandlerResult(output=result)
