"""
API Action 핸들러
설정된 URL/메서드/헤더/본문으로 HTTP 요청을 보내고 응답 본문을 노드 출력으로 사용
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from workflow_editor.config import settings
from workflow_editor.core.exceptions import NodeExecutionError, RemoteCallError
from workflow_editor.core.workflow.handlers.base import (
    BaseNodeHandler,
    HandlerContext,
    HandlerResult,
)
from workflow_editor.core.workflow.service_container import HTTP_CLIENT
from workflow_editor.core.workflow.value_utils import get_nested_value

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "POST"
ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
BODY_METHODS = ["POST", "PUT", "PATCH"]


def apply_response_mapping(data: Any, response_mapping: Optional[List[Dict[str, Any]]]) -> Any:
    """
    responseMapping 적용

    경로가 해석되는 {alias, path}마다 data["_mapped"][alias]를 채운다.
    하나도 해석되지 않으면 data를 그대로 둔다.
    """
    if not response_mapping or not isinstance(data, dict):
        return data

    mapped: Dict[str, Any] = {}
    for mapping in response_mapping:
        alias = mapping.get("alias")
        path = mapping.get("path")
        if not alias or not path:
            continue
        value = get_nested_value(data, path)
        if value is not None:
            mapped[alias] = value

    if mapped:
        data["_mapped"] = mapped
    return data


def _parse_response(response: httpx.Response) -> Any:
    """JSON 응답이면 파싱, 아니면 텍스트"""
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiActionHandler(BaseNodeHandler):
    """
    HTTP 요청 노드 (apiAction, 예전 action 종류 포함)
    """

    def _build_request(self, config: Dict[str, Any]) -> Dict[str, Any]:
        url = config.get("url")
        if not url:
            raise NodeExecutionError("API Action requires a URL", details={"field": "url"})

        method = str(config.get("method") or DEFAULT_METHOD).upper()
        if method not in ALLOWED_METHODS:
            raise NodeExecutionError(
                f"지원하지 않는 HTTP 메서드: {method}",
                details={"field": "method", "method": method},
            )

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        custom_headers = config.get("headers") or {}
        if isinstance(custom_headers, dict):
            headers.update({str(k): str(v) for k, v in custom_headers.items()})

        request_kwargs: Dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": headers,
        }

        if method in BODY_METHODS:
            body = config.get("requestBody")
            if body is None:
                body = {}
            if isinstance(body, str):
                try:
                    body = json.loads(body)
                except json.JSONDecodeError as e:
                    logger.warning(f"[ApiAction] Body JSON 파싱 실패, 문자열로 전송: {e}")
            if isinstance(body, str):
                request_kwargs["content"] = body
            else:
                request_kwargs["json"] = body

        return request_kwargs

    async def handle(self, context: HandlerContext) -> HandlerResult:
        config = context.config
        request_kwargs = self._build_request(config)
        method, url = request_kwargs["method"], request_kwargs["url"]

        logger.info(
            f"[ApiAction] 요청 시작: {method} {url} "
            f"(node={context.node_id}, headers={len(request_kwargs['headers'])})"
        )

        client: Optional[httpx.AsyncClient] = context.get_service(HTTP_CLIENT)
        try:
            if client is not None:
                response = await client.request(**request_kwargs)
            else:
                async with httpx.AsyncClient(
                    base_url=settings.backend_base_url,
                    timeout=settings.http_timeout_seconds,
                    follow_redirects=True,
                ) as temp_client:
                    response = await temp_client.request(**request_kwargs)

        except httpx.TimeoutException as e:
            error_msg = f"요청 타임아웃 ({settings.http_timeout_seconds}초 초과)"
            logger.error(f"[ApiAction] {error_msg}: {url}")
            raise RemoteCallError(error_msg, details={"url": url}) from e

        except httpx.RequestError as e:
            error_msg = f"요청 실패: {str(e)}"
            logger.error(f"[ApiAction] {error_msg}")
            raise RemoteCallError(error_msg, details={"url": url}) from e

        body = _parse_response(response)
        if not response.is_success:
            logger.error(
                f"[ApiAction] 응답 수신: {response.status_code}\n"
                f"응답 본문: {response.text[:500]}"
            )
            raise RemoteCallError(
                f"HTTP {response.status_code}",
                payload=body,
                details={"url": url, "status_code": response.status_code},
            )

        logger.info(f"[ApiAction] 응답 수신: {response.status_code} ({len(response.content)} bytes)")
        return HandlerResult(output=apply_response_mapping(body, config.get("responseMapping")))
