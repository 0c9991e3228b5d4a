"""
워크플로우 저장 백엔드 클라이언트

GET/POST/PUT/DELETE /api/workflows[/{id}]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Union

from pydantic import ValidationError as PydanticValidationError

from workflow_editor.core.exceptions import PersistenceError
from workflow_editor.schemas.workflow import WorkflowDocument
from workflow_editor.services.backend_client import BackendClient
from workflow_editor.services.workflow_serializer import document_payload

logger = logging.getLogger(__name__)

WORKFLOWS_PATH = "/api/workflows"

WorkflowId = Union[int, str]


def _unwrap(payload: Any) -> Any:
    """{"data": ...} 형태로 감싼 응답 처리"""
    if isinstance(payload, dict) and "data" in payload and "nodes" not in payload:
        return payload["data"]
    return payload


def _to_document(payload: Any) -> WorkflowDocument:
    try:
        return WorkflowDocument.model_validate(_unwrap(payload))
    except PydanticValidationError as e:
        raise PersistenceError(
            "백엔드가 올바르지 않은 워크플로우 문서를 반환했습니다",
            payload=payload,
            details={"errors": e.errors(include_url=False)},
        ) from e


class WorkflowApiClient(BackendClient):
    """
    워크플로우 문서 CRUD 클라이언트

    Example:
        >>> async with WorkflowApiClient() as api:
        ...     document = await api.get_workflow(12)
    """

    error_class = PersistenceError

    async def list_workflows(self) -> List[Dict[str, Any]]:
        payload = _unwrap(await self._request("GET", WORKFLOWS_PATH))
        if isinstance(payload, dict):
            payload = payload.get("workflows") or []
        return payload or []

    async def get_workflow(self, workflow_id: WorkflowId) -> WorkflowDocument:
        payload = await self._request("GET", f"{WORKFLOWS_PATH}/{workflow_id}")
        return _to_document(payload)

    async def create_workflow(self, document: WorkflowDocument) -> WorkflowDocument:
        logger.info(f"[Workflow] 생성 요청: {document.name} ({len(document.nodes)} nodes)")
        payload = await self._request("POST", WORKFLOWS_PATH, json=document_payload(document))
        return _to_document(payload)

    async def update_workflow(self, workflow_id: WorkflowId, document: WorkflowDocument) -> WorkflowDocument:
        logger.info(f"[Workflow] 저장 요청: id={workflow_id} ({len(document.nodes)} nodes)")
        payload = await self._request(
            "PUT", f"{WORKFLOWS_PATH}/{workflow_id}", json=document_payload(document)
        )
        if payload is None:
            return document.model_copy(update={"id": workflow_id})
        return _to_document(payload)

    async def delete_workflow(self, workflow_id: WorkflowId) -> None:
        logger.info(f"[Workflow] 삭제 요청: id={workflow_id}")
        await self._request("DELETE", f"{WORKFLOWS_PATH}/{workflow_id}")
