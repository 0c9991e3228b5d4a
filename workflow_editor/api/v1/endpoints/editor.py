"""
에디터 API 엔드포인트

세션 단위로 그래프 편집, 연결, 바인딩 조회, 실행 시뮬레이션, 저장 기능을 제공합니다.
"""

from fastapi import APIRouter, Depends, Query, status
import logging
from typing import Optional

from workflow_editor.core.workflow.path_extractor import extract_paths
from workflow_editor.config import settings
from workflow_editor.schemas.editor import (
    AddNodeRequest,
    BindFieldRequest,
    BindFieldResponse,
    BindingsResponse,
    ConnectResponse,
    CreateSessionRequest,
    ExtractPathsRequest,
    KeyPressRequest,
    KeyPressResponse,
    LayoutRequest,
    LoadSessionRequest,
    PathsResponse,
    PortResponse,
    RenameNodeRequest,
    ResetResponse,
    RunResponse,
    SaveResponse,
    SelectEdgeRequest,
    SessionResponse,
    TriggerResponse,
    UpdateNodeConfigRequest,
)
from workflow_editor.schemas.workflow import (
    ConnectRequest,
    NodePosition,
    WorkflowDocument,
    WorkflowNode,
)
from workflow_editor.services.editor_session_service import (
    EditorSession,
    EditorSessionService,
    get_editor_session_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/editor")


def _session_response(session: EditorSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        name=session.name,
        description=session.description,
        workflow_id=session.workflow_id,
        theme=session.context.theme,
        nodes=session.graph.nodes,
        edges=session.graph.edges,
        selected_edge_id=session.selected_edge_id,
        can_undo=session.history.can_undo,
        can_redo=session.history.can_redo,
        autosave_status=session.autosaver.status.value,
        has_unsaved_changes=session.autosaver.has_unsaved_changes,
    )


# ========== 세션 ==========

@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="에디터 세션 생성"
)
async def create_session(
    request: CreateSessionRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = service.create_session(
        name=request.name,
        description=request.description,
        document=request.document,
        theme=request.theme,
        autosave=request.autosave,
    )
    return _session_response(session)


@router.post(
    "/sessions/load",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="저장된 워크플로우로 세션 생성"
)
async def load_session(
    request: LoadSessionRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = await service.load_session(request.workflow_id, theme=request.theme, autosave=request.autosave)
    return _session_response(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse, summary="세션 상태 조회")
async def get_session(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    return _session_response(service.get_session(session_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT, summary="세션 종료")
async def close_session(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> None:
    await service.close_session(session_id)


@router.get("/sessions/{session_id}/document", response_model=WorkflowDocument, summary="저장 문서 형태로 조회")
async def get_document(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> WorkflowDocument:
    return service.get_session(session_id).to_document()


# ========== 노드 ==========

@router.post(
    "/sessions/{session_id}/nodes",
    response_model=WorkflowNode,
    status_code=status.HTTP_201_CREATED,
    summary="노드 추가"
)
async def add_node(
    session_id: str,
    request: AddNodeRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> WorkflowNode:
    session = service.get_session(session_id)
    return session.add_node(request.kind, request.position, request.label)


@router.put("/sessions/{session_id}/nodes/{node_id}/config", response_model=WorkflowNode, summary="노드 설정 교체")
async def update_node_config(
    session_id: str,
    node_id: str,
    request: UpdateNodeConfigRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> WorkflowNode:
    session = service.get_session(session_id)
    if request.config_text is not None:
        return session.update_node_config_from_json(node_id, request.config_text)
    return session.update_node_config(node_id, request.config)


@router.patch("/sessions/{session_id}/nodes/{node_id}", response_model=WorkflowNode, summary="노드 이름/설명 변경")
async def rename_node(
    session_id: str,
    node_id: str,
    request: RenameNodeRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> WorkflowNode:
    session = service.get_session(session_id)
    return session.rename_node(node_id, request.label, request.description)


@router.put("/sessions/{session_id}/nodes/{node_id}/position", response_model=WorkflowNode, summary="노드 이동")
async def move_node(
    session_id: str,
    node_id: str,
    position: NodePosition,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> WorkflowNode:
    return service.get_session(session_id).move_node(node_id, position)


@router.delete(
    "/sessions/{session_id}/nodes/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="노드 삭제 (연결된 엣지 포함, 없는 노드는 무시)"
)
async def delete_node(
    session_id: str,
    node_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> None:
    service.get_session(session_id).delete_node(node_id)


@router.post("/sessions/{session_id}/nodes/{node_id}/ports", response_model=PortResponse, summary="포트 추가")
async def add_port(
    session_id: str,
    node_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> PortResponse:
    session = service.get_session(session_id)
    port_id = session.add_port(node_id)
    node = session.graph.require_node(node_id)
    return PortResponse(node_id=node_id, port_id=port_id, inputs=node.inputs, outputs=node.outputs)


@router.delete("/sessions/{session_id}/nodes/{node_id}/ports/{index}", response_model=PortResponse, summary="포트 제거")
async def remove_port(
    session_id: str,
    node_id: str,
    index: int,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> PortResponse:
    session = service.get_session(session_id)
    port_id = session.remove_port(node_id, index)
    node = session.graph.require_node(node_id)
    return PortResponse(node_id=node_id, port_id=port_id, inputs=node.inputs, outputs=node.outputs)


# ========== 엣지 ==========

@router.post("/sessions/{session_id}/edges", response_model=ConnectResponse, summary="노드 연결")
async def connect(
    session_id: str,
    request: ConnectRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> ConnectResponse:
    """
    연결 요청

    점유된 입력 포트로의 연결은 오류가 아니라 accepted=false와 경고 메시지로 응답합니다.
    """
    result = service.get_session(session_id).connect(request)
    return ConnectResponse(
        accepted=result.accepted,
        action=result.action,
        warning=result.warning,
        edge=result.edge,
        removed_edge=result.removed_edge,
    )


@router.delete("/sessions/{session_id}/edges/{edge_id}", status_code=status.HTTP_204_NO_CONTENT, summary="엣지 삭제")
async def delete_edge(
    session_id: str,
    edge_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> None:
    service.get_session(session_id).delete_edge(edge_id)


@router.put("/sessions/{session_id}/selection", response_model=SessionResponse, summary="엣지 선택")
async def select_edge(
    session_id: str,
    request: SelectEdgeRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = service.get_session(session_id)
    session.select_edge(request.edge_id)
    return _session_response(session)


@router.post("/sessions/{session_id}/keys", response_model=KeyPressResponse, summary="단축키 입력")
async def press_key(
    session_id: str,
    request: KeyPressRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> KeyPressResponse:
    session = service.get_session(session_id)
    handled = session.press_key(request.key)
    return KeyPressResponse(handled=handled, session=_session_response(session))


# ========== 편집 기록 / 배치 ==========

@router.post("/sessions/{session_id}/undo", response_model=SessionResponse, summary="실행 취소")
async def undo(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = service.get_session(session_id)
    session.undo()
    return _session_response(session)


@router.post("/sessions/{session_id}/redo", response_model=SessionResponse, summary="다시 실행")
async def redo(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = service.get_session(session_id)
    session.redo()
    return _session_response(session)


@router.post("/sessions/{session_id}/layout", response_model=SessionResponse, summary="자동 배치")
async def layout(
    session_id: str,
    request: LayoutRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SessionResponse:
    session = service.get_session(session_id)
    session.auto_layout(request.direction)
    return _session_response(session)


# ========== 바인딩 / 경로 ==========

@router.get("/sessions/{session_id}/nodes/{node_id}/bindings", response_model=BindingsResponse, summary="바인딩 후보 조회")
async def get_bindings(
    session_id: str,
    node_id: str,
    source_node_id: Optional[str] = Query(None, description="선택한 소스 노드"),
    path: Optional[str] = Query(None, description="선택한 경로"),
    service: EditorSessionService = Depends(get_editor_session_service)
) -> BindingsResponse:
    session = service.get_session(session_id)
    return BindingsResponse(
        available_inputs=session.available_inputs(node_id),
        resolution=session.resolve_binding(node_id, source_node_id, path),
    )


@router.put(
    "/sessions/{session_id}/nodes/{node_id}/bindings/{field}",
    response_model=BindFieldResponse,
    summary="설정 필드 바인딩"
)
async def bind_field(
    session_id: str,
    node_id: str,
    field: str,
    request: BindFieldRequest,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> BindFieldResponse:
    session = service.get_session(session_id)
    binding = session.bind_field(
        node_id,
        field,
        is_dynamic=request.is_dynamic,
        source_node_id=request.source_node_id,
        path=request.path,
        value=request.value,
    )
    return BindFieldResponse(binding=binding.to_dict(), node=session.graph.require_node(node_id))


@router.post("/paths", response_model=PathsResponse, summary="샘플 값에서 경로 추출")
async def extract(request: ExtractPathsRequest) -> PathsResponse:
    max_depth = request.max_depth if request.max_depth is not None else settings.path_extractor_max_depth
    return PathsResponse(paths=extract_paths(request.value, prefix=request.prefix, max_depth=max_depth))


# ========== 실행 ==========

@router.post("/sessions/{session_id}/nodes/{node_id}/trigger", response_model=TriggerResponse, summary="노드 실행")
async def trigger_node(
    session_id: str,
    node_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> TriggerResponse:
    """
    노드 실행 (완료될 때까지 대기)

    노드 실행 실패는 HTTP 오류가 아니라 status=error와 error 필드로 응답합니다.
    """
    session = service.get_session(session_id)
    result = await session.trigger(node_id)
    return TriggerResponse(
        node_id=node_id,
        status=result.status,
        output=result.output,
        error=result.error,
        node=session.graph.get_node(node_id),
    )


@router.post("/sessions/{session_id}/run", response_model=RunResponse, summary="워크플로우 전체 실행")
async def run_workflow(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> RunResponse:
    session = service.get_session(session_id)
    execution_path = await session.run()
    return RunResponse(execution_path=execution_path, nodes=session.graph.nodes)


@router.post("/sessions/{session_id}/reset", response_model=ResetResponse, summary="실행 결과 초기화")
async def reset_execution(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> ResetResponse:
    return ResetResponse(reset_count=service.get_session(session_id).reset_execution())


# ========== 저장 ==========

@router.post("/sessions/{session_id}/save", response_model=SaveResponse, summary="즉시 저장")
async def save(
    session_id: str,
    service: EditorSessionService = Depends(get_editor_session_service)
) -> SaveResponse:
    session = service.get_session(session_id)
    saved = await session.save()
    return SaveResponse(
        saved=saved,
        workflow_id=session.workflow_id,
        autosave_status=session.autosaver.status.value,
    )
