"""
워크플로우 백엔드 HTTP 클라이언트 기반 클래스

저장/이메일 등 백엔드 API 클라이언트가 공유하는 httpx.AsyncClient 생명주기와 오류 변환을 담당합니다.
"""

from __future__ import annotations

import httpx
import logging
from typing import Any, Optional, Type

from workflow_editor.config import settings
from workflow_editor.core.exceptions import RemoteCallError

logger = logging.getLogger(__name__)


class BackendClient:
    """
    백엔드 API 클라이언트 기반

    외부에서 httpx.AsyncClient를 주입하면 그 클라이언트를 그대로 사용하고 닫지 않으며,
    주입하지 않으면 async 컨텍스트 매니저 진입 시 직접 생성합니다.
    """

    error_class: Type[RemoteCallError] = RemoteCallError

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url or settings.backend_base_url
        self.api_token = api_token if api_token is not None else settings.backend_api_token
        self.timeout = timeout or settings.http_timeout_seconds
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

    def _default_headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._default_headers(),
            )
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        await self.aclose()

    async def aclose(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        요청 전송 후 JSON 본문 반환

        Raises:
            RemoteCallError (또는 error_class): 네트워크 오류 또는 2xx가 아닌 응답
        """
        if self.client is None:
            await self.__aenter__()

        headers = {**self._default_headers(), **kwargs.pop("headers", {})}
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"[Backend] {method} {path} 요청 실패: {e}")
            raise self.error_class(f"백엔드 요청 실패: {e}", details={"path": path}) from e

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = response.text

        if not response.is_success:
            logger.error(f"[Backend] {method} {path} -> {response.status_code}: {response.text[:500]}")
            message = payload.get("error") if isinstance(payload, dict) and payload.get("error") else f"HTTP {response.status_code}"
            raise self.error_class(
                message,
                payload=payload,
                details={"path": path, "status_code": response.status_code},
            )

        logger.debug(f"[Backend] {method} {path} -> {response.status_code}")
        return payload
