"""
노드 핸들러 레지스트리

노드 종류(kind) 문자열과 실행 핸들러 클래스를 연결합니다.
"""

from typing import Dict, List, Optional, Type, Union
import logging

from workflow_editor.core.workflow.base_node import NOT_IMPLEMENTED_KINDS, NodeKind
from workflow_editor.core.workflow.handlers.base import BaseNodeHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """
    노드 핸들러 레지스트리 (싱글톤)

    기본 핸들러는 처음 생성될 때 등록됩니다.
    """

    _instance: Optional["HandlerRegistry"] = None
    _handlers: Dict[str, Type[BaseNodeHandler]] = {}

    def __new__(cls) -> "HandlerRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
            cls._instance._register_default_handlers()
        return cls._instance

    def _register_default_handlers(self) -> None:
        from workflow_editor.core.workflow.handlers.api_action import ApiActionHandler
        from workflow_editor.core.workflow.handlers.condition_handler import ConditionHandler
        from workflow_editor.core.workflow.handlers.email_action import EmailActionHandler
        from workflow_editor.core.workflow.handlers.local_nodes import (
            ConstantHandler,
            EndHandler,
            MergeHandler,
            PassThroughHandler,
            StartHandler,
            TemplateHandler,
        )
        from workflow_editor.core.workflow.handlers.stub_actions import (
            GoogleActionHandler,
            NotImplementedActionHandler,
        )

        defaults = {
            NodeKind.START: StartHandler,
            NodeKind.WEBHOOK_TRIGGER: StartHandler,
            NodeKind.API_ACTION: ApiActionHandler,
            NodeKind.ACTION: ApiActionHandler,
            NodeKind.EMAIL_ACTION: EmailActionHandler,
            NodeKind.CONDITION: ConditionHandler,
            NodeKind.CONSTANT: ConstantHandler,
            NodeKind.END: EndHandler,
            NodeKind.BRANCH: PassThroughHandler,
            NodeKind.JOIN: PassThroughHandler,
            NodeKind.MERGE: MergeHandler,
            NodeKind.TEMPLATE: TemplateHandler,
            NodeKind.GOOGLE_CALENDAR_ACTION: GoogleActionHandler,
            NodeKind.GOOGLE_DOCS_ACTION: GoogleActionHandler,
        }
        defaults.update({kind: NotImplementedActionHandler for kind in NOT_IMPLEMENTED_KINDS})
        for kind, handler_class in defaults.items():
            self.register(kind, handler_class)

    @staticmethod
    def _key(kind: Union[NodeKind, str]) -> str:
        return kind.value if isinstance(kind, NodeKind) else str(kind)

    def register(self, kind: Union[NodeKind, str], handler_class: Type[BaseNodeHandler]) -> None:
        """
        핸들러 등록

        Raises:
            ValueError: 이미 등록된 노드 종류인 경우
            TypeError: BaseNodeHandler 하위 클래스가 아닌 경우
        """
        key = self._key(kind)
        if key in self._handlers:
            raise ValueError(f"Node kind {key} is already registered")
        if not issubclass(handler_class, BaseNodeHandler):
            raise TypeError("Handler class must inherit from BaseNodeHandler")

        self._handlers[key] = handler_class
        logger.debug(f"Registered handler: {key} -> {handler_class.__name__}")

    def unregister(self, kind: Union[NodeKind, str]) -> None:
        key = self._key(kind)
        if key in self._handlers:
            del self._handlers[key]
            logger.info(f"Unregistered handler: {key}")

    def get(self, kind: Union[NodeKind, str]) -> Optional[Type[BaseNodeHandler]]:
        return self._handlers.get(self._key(kind))

    def create_handler(self, kind: Union[NodeKind, str]) -> BaseNodeHandler:
        """
        핸들러 인스턴스 생성

        Raises:
            KeyError: 등록되지 않은 노드 종류인 경우
        """
        key = self._key(kind)
        if key not in self._handlers:
            raise KeyError(f"Node kind {key} is not registered")
        return self._handlers[key]()

    def list_kinds(self) -> List[str]:
        return list(self._handlers.keys())

    def __contains__(self, kind: Union[NodeKind, str]) -> bool:
        return self._key(kind) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"HandlerRegistry({', '.join(self._handlers.keys())})"


# 전역 레지스트리 인스턴스
handler_registry = HandlerRegistry()
