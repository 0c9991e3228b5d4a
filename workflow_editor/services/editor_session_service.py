"""
에디터 세션 서비스

편집 중인 그래프, 실행 시뮬레이터, 편집 기록, 자동 저장, 에디터 컨텍스트를 세션 단위로 묶고
HTTP API가 사용하는 메모리 세션 저장소를 제공합니다.
"""

from __future__ import annotations

import uuid
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from workflow_editor.core.exceptions import InvalidInputError, ResourceNotFoundError
from workflow_editor.core.workflow.autosave import AutoSaver
from workflow_editor.core.workflow.base_node import NodeExecutionResult, NodeKind
from workflow_editor.core.workflow.binding_resolver import (
    AvailableInput,
    BindingResolution,
    FieldBinding,
    SourcePath,
    list_available_inputs,
    resolve_binding,
)
from workflow_editor.core.workflow.connection_engine import ConnectResult
from workflow_editor.core.workflow.editor_context import EditorContext, InMemoryShortcuts, Theme
from workflow_editor.core.workflow.executor import WorkflowExecutor
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.core.workflow.history import EditHistory
from workflow_editor.core.workflow.layout import LayeredLayoutEngine, auto_layout
from workflow_editor.core.workflow.service_container import ServiceContainer, default_container
from workflow_editor.schemas.workflow import (
    ConnectRequest,
    NodePosition,
    WorkflowDocument,
    WorkflowNode,
)
from workflow_editor.services.workflow_api_service import WorkflowApiClient
from workflow_editor.services.workflow_serializer import from_document, to_document

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_NAME = "Untitled Workflow"

# 실행 결과 필드 (편집 기록 복원 시 현재 값을 유지)
_EXECUTION_FIELDS = ("status", "last_output", "last_error", "condition_result", "last_evaluation")


class SessionNotFoundError(ResourceNotFoundError):
    """에디터 세션 없음"""
    def __init__(self, session_id: str):
        super().__init__(
            f"에디터 세션을 찾을 수 없습니다: {session_id}",
            details={"session_id": session_id},
        )
        self.error_code = "SESSION_NOT_FOUND"


def _carry_execution_state(source: WorkflowGraph, target: WorkflowGraph) -> None:
    """source에 있는 노드의 실행 결과를 target의 같은 노드로 옮김"""
    for node in target:
        current = source.get_node(node.id)
        if current is None:
            continue
        for field in _EXECUTION_FIELDS:
            setattr(node, field, getattr(current, field))


class EditorSession:
    """
    편집 세션

    그래프 편집 연산은 모두 동기이며, 성공한 편집만 기록과 자동 저장 대상이 됩니다.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        graph: Optional[WorkflowGraph] = None,
        name: str = DEFAULT_WORKFLOW_NAME,
        description: Optional[str] = None,
        workflow_id: Optional[Union[int, str]] = None,
        is_active: bool = True,
        context: Optional[EditorContext] = None,
        services: Optional[ServiceContainer] = None,
        api_client: Optional[WorkflowApiClient] = None,
        delay_seconds: Optional[float] = None,
        autosave: bool = False,
        autosave_debounce_seconds: Optional[float] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.graph = graph if graph is not None else WorkflowGraph()
        self.name = name
        self.description = description
        self.workflow_id = workflow_id
        self.is_active = is_active
        self.api_client = api_client

        self.executor = WorkflowExecutor(self.graph, services=services, delay_seconds=delay_seconds)
        self.history = EditHistory()
        self.history.record(self.graph)

        self.context = context or EditorContext()
        self.selected_edge_id: Optional[str] = None
        self.context.bind_edge_deletion(self.delete_selected_edge)

        self.autosaver = AutoSaver(
            graph_provider=lambda: self.graph,
            save_callback=self._persist,
            debounce_seconds=autosave_debounce_seconds,
            enabled=autosave and api_client is not None,
        )
        self.autosaver.mark_saved()

        self._bindings: Dict[Tuple[str, str], FieldBinding] = {}

    # ========== 편집 공통 처리 ==========

    def _edited(self) -> None:
        if self.history.record(self.graph):
            self.autosaver.notify_change()

    def _replace_graph(self, graph: WorkflowGraph) -> None:
        _carry_execution_state(self.graph, graph)
        self.graph = graph
        self.executor.graph = graph
        if self.selected_edge_id and graph.get_edge(self.selected_edge_id) is None:
            self.selected_edge_id = None
        self.autosaver.notify_change()

    # ========== 노드 ==========

    def add_node(
        self,
        kind: Union[NodeKind, str],
        position: Union[NodePosition, Dict[str, float]],
        label: Optional[str] = None,
    ) -> WorkflowNode:
        node_id = self.graph.add_node(kind, position, label)
        self._edited()
        return self.graph.require_node(node_id)

    def update_node_config(self, node_id: str, patch: Optional[Dict[str, Any]]) -> WorkflowNode:
        node = self.graph.require_node(node_id)
        self.graph.update_node_config(node_id, patch)
        self._edited()
        return node

    def update_node_config_from_json(self, node_id: str, text: str) -> WorkflowNode:
        node = self.graph.require_node(node_id)
        self.graph.update_node_config_from_json(node_id, text)
        self._edited()
        return node

    def rename_node(self, node_id: str, label: str, description: Optional[str] = None) -> WorkflowNode:
        node = self.graph.require_node(node_id)
        self.graph.rename_node(node_id, label, description)
        self._edited()
        return node

    def move_node(self, node_id: str, position: Union[NodePosition, Dict[str, float]]) -> WorkflowNode:
        node = self.graph.require_node(node_id)
        self.graph.move_node(node_id, position)
        self._edited()
        return node

    def delete_node(self, node_id: str) -> bool:
        deleted = self.graph.delete_node(node_id)
        if deleted:
            self.executor.clear_callbacks(node_id)
            self._bindings = {key: value for key, value in self._bindings.items() if key[0] != node_id}
            if self.selected_edge_id and self.graph.get_edge(self.selected_edge_id) is None:
                self.selected_edge_id = None
            self._edited()
        return deleted

    # ========== 포트 ==========

    def add_port(self, node_id: str) -> str:
        port_id = self.graph.add_port(node_id)
        self._edited()
        return port_id

    def remove_port(self, node_id: str, index: int) -> str:
        port_id = self.graph.remove_port(node_id, index)
        self._edited()
        return port_id

    # ========== 엣지 ==========

    def connect(self, request: ConnectRequest) -> ConnectResult:
        result = self.graph.connect(request)
        if result.accepted:
            self._edited()
        return result

    def delete_edge(self, edge_id: str) -> bool:
        deleted = self.graph.delete_edge(edge_id)
        if deleted:
            if self.selected_edge_id == edge_id:
                self.selected_edge_id = None
            self._edited()
        return deleted

    def select_edge(self, edge_id: Optional[str]) -> None:
        if edge_id is not None and self.graph.get_edge(edge_id) is None:
            raise ResourceNotFoundError(f"엣지를 찾을 수 없습니다: {edge_id}", details={"edge_id": edge_id})
        self.selected_edge_id = edge_id

    def delete_selected_edge(self) -> bool:
        """선택된 엣지 삭제 (Delete/Backspace 단축키)"""
        if not self.selected_edge_id:
            return False
        return self.delete_edge(self.selected_edge_id)

    def press_key(self, key: str) -> int:
        """단축키 입력 (InMemoryShortcuts 포트를 쓰는 세션만)"""
        shortcuts = self.context.shortcuts
        if not isinstance(shortcuts, InMemoryShortcuts):
            raise InvalidInputError("이 세션은 단축키 입력을 지원하지 않습니다")
        return shortcuts.press(key)

    # ========== 편집 기록 / 배치 ==========

    def undo(self) -> bool:
        graph = self.history.undo()
        if graph is None:
            return False
        self._replace_graph(graph)
        return True

    def redo(self) -> bool:
        graph = self.history.redo()
        if graph is None:
            return False
        self._replace_graph(graph)
        return True

    def auto_layout(self, direction: str = "DOWN") -> int:
        try:
            engine = LayeredLayoutEngine(direction=direction)
        except ValueError as e:
            raise InvalidInputError(str(e), details={"direction": direction}) from e
        moved = auto_layout(self.graph, engine)
        self._edited()
        return moved

    # ========== 바인딩 ==========

    def available_inputs(self, node_id: str) -> List[AvailableInput]:
        self.graph.require_node(node_id)
        return list_available_inputs(self.graph, node_id)

    def resolve_binding(
        self,
        node_id: str,
        source_node_id: Optional[str] = None,
        path: Optional[str] = None,
    ) -> BindingResolution:
        inputs = self.available_inputs(node_id)
        source_path = SourcePath(node_id=source_node_id, path=path or "")
        return resolve_binding(True, source_path, inputs)

    def bind_field(
        self,
        node_id: str,
        field: str,
        is_dynamic: bool,
        source_node_id: Optional[str] = None,
        path: Optional[str] = None,
        value: Any = None,
    ) -> FieldBinding:
        """
        설정 필드 바인딩 변경 후 노드 설정에 반영

        config[field]에는 정적 값 또는 placeholder가, config.dynamicFields / dynamicFieldPaths에는
        모드와 {nodeId, path}가 저장됩니다.
        """
        node = self.graph.require_node(node_id)
        key = (node_id, field)
        binding = self._bindings.get(key)
        if binding is None:
            config = node.config.to_dict()
            stored_path = (config.get("dynamicFieldPaths") or {}).get(field)
            binding = FieldBinding(
                field_name=field,
                is_dynamic=bool((config.get("dynamicFields") or {}).get(field)),
                value=config.get(field),
                source_path=SourcePath.model_validate(stored_path) if stored_path else None,
            )
            self._bindings[key] = binding

        if not is_dynamic:
            binding.set_static(value)
        else:
            binding.set_dynamic(True)
            inputs = self.available_inputs(node_id)
            if source_node_id and (binding.source_path is None or binding.source_path.node_id != source_node_id):
                binding.select_source(source_node_id)
            if path is not None:
                binding.select_path(path, inputs)
            else:
                binding.sync(inputs)

        config = node.config.to_dict()
        config[field] = binding.value
        config["dynamicFields"] = {**(config.get("dynamicFields") or {}), field: binding.is_dynamic}
        dynamic_paths = dict(config.get("dynamicFieldPaths") or {})
        if binding.is_dynamic and binding.source_path is not None:
            dynamic_paths[field] = binding.source_path.model_dump(by_alias=True)
        else:
            dynamic_paths.pop(field, None)
        config["dynamicFieldPaths"] = dynamic_paths

        self.update_node_config(node_id, config)
        return binding

    # ========== 실행 ==========

    async def trigger(self, node_id: str) -> Optional[NodeExecutionResult]:
        self.graph.require_node(node_id)
        return await self.executor.trigger(node_id)

    async def run(self) -> List[str]:
        return await self.executor.run_workflow()

    def reset_execution(self) -> int:
        return self.executor.reset_execution()

    # ========== 저장 ==========

    def to_document(self) -> WorkflowDocument:
        return to_document(
            self.graph,
            name=self.name,
            description=self.description,
            is_active=self.is_active,
            workflow_id=self.workflow_id,
        )

    async def _persist(self, graph: WorkflowGraph) -> WorkflowDocument:
        if self.api_client is None:
            raise InvalidInputError("저장 백엔드가 설정되지 않은 세션입니다")

        document = to_document(
            graph,
            name=self.name,
            description=self.description,
            is_active=self.is_active,
            workflow_id=self.workflow_id,
        )
        if self.workflow_id is None:
            saved = await self.api_client.create_workflow(document)
            self.workflow_id = saved.id
            logger.info(f"Workflow created: id={self.workflow_id}")
        else:
            saved = await self.api_client.update_workflow(self.workflow_id, document)
        return saved

    async def save(self) -> bool:
        """
        즉시 저장 (디바운스 대기 없음)

        Returns:
            저장했으면 True, 새 문서가 아니고 변경도 없으면 False
        """
        if self.workflow_id is None and await self.autosaver.run_exclusive(self._create_if_new):
            return True
        return await self.autosaver.save_now()

    async def _create_if_new(self) -> bool:
        # 진행 중이던 자동 저장이 이미 문서를 만들었으면 갱신 경로로 넘김
        if self.workflow_id is not None:
            return False
        graph = self.graph
        await self._persist(graph)
        self.autosaver.mark_saved(graph)
        return True

    async def aclose(self) -> None:
        await self.autosaver.aclose()
        self.context.close()
        await self.executor.aclose()


class EditorSessionService:
    """
    메모리 세션 저장소

    Args:
        api_client_factory: 저장 백엔드 클라이언트 생성 함수 (기본: WorkflowApiClient)
        services_factory: 세션별 실행 서비스 컨테이너 생성 함수
        delay_seconds: placeholder 노드 대기 시간 (None이면 설정값)
    """

    def __init__(
        self,
        api_client_factory: Optional[Callable[[], WorkflowApiClient]] = None,
        services_factory: Optional[Callable[[], ServiceContainer]] = None,
        delay_seconds: Optional[float] = None,
    ):
        self._sessions: Dict[str, EditorSession] = {}
        self._api_client_factory = api_client_factory or WorkflowApiClient
        self._services_factory = services_factory or default_container
        self.delay_seconds = delay_seconds

    def _new_session(self, graph: Optional[WorkflowGraph], theme: Theme, autosave: bool, **kwargs: Any) -> EditorSession:
        session = EditorSession(
            graph=graph,
            context=EditorContext(theme=theme, shortcuts=InMemoryShortcuts()),
            services=self._services_factory(),
            api_client=self._api_client_factory(),
            delay_seconds=self.delay_seconds,
            autosave=autosave,
            **kwargs,
        )
        self._sessions[session.session_id] = session
        logger.info(f"Editor session created: {session.session_id} ({len(session.graph)} nodes)")
        return session

    def create_session(
        self,
        name: str = DEFAULT_WORKFLOW_NAME,
        description: Optional[str] = None,
        document: Optional[WorkflowDocument] = None,
        theme: Theme = Theme.LIGHT,
        autosave: bool = False,
    ) -> EditorSession:
        """새 세션 (문서를 주면 그 내용으로 시작)"""
        graph = from_document(document) if document is not None else None
        return self._new_session(
            graph,
            theme,
            autosave,
            name=document.name if document is not None else name,
            description=document.description if document is not None else description,
            workflow_id=document.id if document is not None else None,
            is_active=document.is_active if document is not None else True,
        )

    async def load_session(
        self,
        workflow_id: Union[int, str],
        theme: Theme = Theme.LIGHT,
        autosave: bool = False,
    ) -> EditorSession:
        """저장 백엔드에서 문서를 불러와 세션 생성"""
        api_client = self._api_client_factory()
        try:
            document = await api_client.get_workflow(workflow_id)
        finally:
            await api_client.aclose()

        if document.id is None:
            document = document.model_copy(update={"id": workflow_id})
        return self.create_session(document=document, theme=theme, autosave=autosave)

    def get_session(self, session_id: str) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        await session.aclose()
        if session.api_client is not None:
            await session.api_client.aclose()
        logger.info(f"Editor session closed: {session_id}")

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close_session(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


# 전역 세션 저장소
editor_session_service = EditorSessionService()


def get_editor_session_service() -> EditorSessionService:
    """FastAPI 의존성"""
    return editor_session_service
