"""
워크플로우 서비스 컨테이너

노드 핸들러가 실행 중에 사용하는 외부 협력자(HTTP 클라이언트, 이메일 서비스 등)를
이름으로 등록하고 주입합니다.
"""

from typing import Any, Callable, Dict, Optional
import logging

import httpx

from workflow_editor.config import settings

logger = logging.getLogger(__name__)

HTTP_CLIENT = "http_client"
EMAIL_SERVICE = "email_service"


class ServiceContainer:
    """
    서비스 컨테이너

    Example:
        >>> container = ServiceContainer()
        >>> container.register("http_client", httpx.AsyncClient(base_url="http://localhost:8080"))
        >>> client = container.get("http_client")
    """

    def __init__(self):
        self._services: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._singletons: Dict[str, Any] = {}

        logger.debug("ServiceContainer initialized")

    def register(self, name: str, service: Any) -> None:
        """서비스 인스턴스 등록"""
        self._services[name] = service
        logger.debug(f"Registered service: {name}")

    def register_factory(
        self,
        name: str,
        factory: Callable[[], Any],
        singleton: bool = False
    ) -> None:
        """
        서비스 팩토리 함수 등록

        Args:
            name: 서비스 이름
            factory: 서비스를 생성하는 함수
            singleton: True면 첫 호출 시 생성 후 재사용
        """
        self._factories[name] = factory
        if singleton:
            self._singletons[name] = None
        logger.debug(f"Registered factory: {name} (singleton={singleton})")

    def get(self, name: str) -> Optional[Any]:
        """서비스 조회 (없으면 None)"""
        if name in self._services:
            return self._services[name]

        if name in self._singletons:
            if self._singletons[name] is None:
                self._singletons[name] = self._factories[name]()
                logger.debug(f"Created singleton service: {name}")
            return self._singletons[name]

        if name in self._factories:
            return self._factories[name]()

        return None

    def has(self, name: str) -> bool:
        return name in self._services or name in self._factories

    def unregister(self, name: str) -> bool:
        removed = False
        for registry in (self._services, self._factories, self._singletons):
            if name in registry:
                del registry[name]
                removed = True
        if removed:
            logger.debug(f"Unregistered service: {name}")
        return removed

    def created_instances(self) -> Dict[str, Any]:
        """등록되었거나 이미 생성된 인스턴스 (정리용)"""
        instances = dict(self._services)
        instances.update({name: value for name, value in self._singletons.items() if value is not None})
        return instances

    def __repr__(self) -> str:
        return f"ServiceContainer(services={sorted(set(self._services) | set(self._factories))})"


def default_container() -> ServiceContainer:
    """
    에디터 세션 기본 컨테이너

    HTTP 클라이언트는 첫 API 노드 실행 때 한 번 생성되고, 세션 종료 시 executor가 닫습니다.
    """
    container = ServiceContainer()
    container.register_factory(
        HTTP_CLIENT,
        lambda: httpx.AsyncClient(
            base_url=settings.backend_base_url,
            timeout=settings.http_timeout_seconds,
            follow_redirects=True,
        ),
        singleton=True,
    )
    return container
