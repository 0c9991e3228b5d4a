"""
이메일 서비스 클라이언트

백엔드의 이메일 발송 엔드포인트를 호출합니다.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from workflow_editor.core.exceptions import RemoteCallError
from workflow_editor.services.backend_client import BackendClient

logger = logging.getLogger(__name__)

SEND_EMAIL_PATH = "/api/workflows/actions/email"


class EmailSendRequest(BaseModel):
    """이메일 발송 요청 (백엔드는 customData로 템플릿을 렌더링)"""
    model_config = ConfigDict(populate_by_name=True)

    template: str = Field(..., min_length=1, description="템플릿 이름")
    recipients: List[str] = Field(..., min_length=1, description="수신자 목록")
    subject: Optional[str] = Field(None, description="제목")
    custom_data: Dict[str, Any] = Field(default_factory=dict, alias="customData", description="템플릿 데이터")


class EmailService(BackendClient):
    """
    이메일 서비스 클라이언트

    Example:
        >>> async with EmailService() as email:
        ...     await email.send(EmailSendRequest(template="welcome", recipients=["a@b.c"]))
    """

    async def send(self, request: EmailSendRequest) -> Dict[str, Any]:
        """
        이메일 발송

        Returns:
            백엔드 응답 본문

        Raises:
            RemoteCallError: 요청 실패, 2xx가 아닌 응답, success=false 응답
        """
        logger.info(f"[Email] 발송 요청: template={request.template}, recipients={len(request.recipients)}")
        payload = await self._request("POST", SEND_EMAIL_PATH, json=request.model_dump(by_alias=True))

        if isinstance(payload, dict) and payload.get("success") is False:
            raise RemoteCallError(payload.get("error") or "Failed to send email", payload=payload)
        return payload if isinstance(payload, dict) else {"result": payload}
