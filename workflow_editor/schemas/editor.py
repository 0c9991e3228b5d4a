"""
에디터 API 스키마
"""
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Dict, Any, Union

from workflow_editor.core.workflow.base_node import NodeKind, NodeStatus
from workflow_editor.core.workflow.binding_resolver import AvailableInput, BindingResolution
from workflow_editor.core.workflow.connection_engine import ConnectAction
from workflow_editor.core.workflow.editor_context import Theme
from workflow_editor.schemas.workflow import (
    NodePosition,
    PathEntry,
    WorkflowDocument,
    WorkflowEdge,
    WorkflowNode,
)


# ============ 세션 ============

class CreateSessionRequest(BaseModel):
    """세션 생성 요청"""
    name: str = Field("Untitled Workflow", min_length=1, max_length=255)
    description: Optional[str] = None
    document: Optional[WorkflowDocument] = Field(None, description="시작할 워크플로우 문서")
    theme: Theme = Theme.LIGHT
    autosave: bool = Field(False, description="디바운스 자동 저장 사용")


class LoadSessionRequest(BaseModel):
    """저장된 워크플로우로 세션 생성"""
    workflow_id: Union[int, str]
    theme: Theme = Theme.LIGHT
    autosave: bool = False


class SessionResponse(BaseModel):
    """세션 상태"""
    session_id: str
    name: str
    description: Optional[str] = None
    workflow_id: Optional[Union[int, str]] = None
    theme: Theme
    nodes: List[WorkflowNode]
    edges: List[WorkflowEdge]
    selected_edge_id: Optional[str] = None
    can_undo: bool
    can_redo: bool
    autosave_status: str
    has_unsaved_changes: bool


# ============ 노드 / 포트 ============

class AddNodeRequest(BaseModel):
    """노드 추가"""
    kind: NodeKind
    position: NodePosition = Field(default_factory=lambda: NodePosition(x=0, y=0))
    label: Optional[str] = None


class UpdateNodeConfigRequest(BaseModel):
    """노드 설정 교체 (dict 또는 JSON 텍스트 중 하나)"""
    config: Optional[Dict[str, Any]] = None
    config_text: Optional[str] = Field(None, description="설정 JSON 텍스트")

    @model_validator(mode="after")
    def _one_of(self) -> "UpdateNodeConfigRequest":
        if self.config is None and self.config_text is None:
            raise ValueError("config 또는 config_text 중 하나가 필요합니다")
        return self


class RenameNodeRequest(BaseModel):
    label: str = Field(..., max_length=255)
    description: Optional[str] = None


class PortResponse(BaseModel):
    node_id: str
    port_id: str
    inputs: Optional[List[str]] = None
    outputs: Optional[List[str]] = None


# ============ 엣지 ============

class ConnectResponse(BaseModel):
    """연결 결과 (거부된 경우 accepted=false와 경고 메시지)"""
    accepted: bool
    action: ConnectAction
    warning: Optional[str] = None
    edge: Optional[WorkflowEdge] = None
    removed_edge: Optional[WorkflowEdge] = None


class SelectEdgeRequest(BaseModel):
    edge_id: Optional[str] = None


class KeyPressRequest(BaseModel):
    key: str = Field(..., min_length=1, description="예: Delete, Backspace")


class KeyPressResponse(BaseModel):
    handled: int
    session: SessionResponse


class LayoutRequest(BaseModel):
    direction: str = Field("DOWN", description="DOWN 또는 RIGHT")


# ============ 실행 ============

class TriggerResponse(BaseModel):
    """노드 실행 결과"""
    node_id: str
    status: NodeStatus
    output: Optional[Any] = None
    error: Optional[Any] = None
    node: Optional[WorkflowNode] = None


class RunResponse(BaseModel):
    execution_path: List[str]
    nodes: List[WorkflowNode]


class ResetResponse(BaseModel):
    reset_count: int


# ============ 바인딩 / 경로 ============

class BindingsResponse(BaseModel):
    """노드의 바인딩 후보와 선택 소스의 경로"""
    available_inputs: List[AvailableInput]
    resolution: BindingResolution


class BindFieldRequest(BaseModel):
    """설정 필드 바인딩"""
    model_config = ConfigDict(populate_by_name=True)

    is_dynamic: bool = Field(..., alias="isDynamic")
    source_node_id: Optional[str] = Field(None, alias="sourceNodeId")
    path: Optional[str] = None
    value: Optional[Any] = None


class BindFieldResponse(BaseModel):
    binding: Dict[str, Any]
    node: WorkflowNode


class ExtractPathsRequest(BaseModel):
    value: Any = None
    prefix: str = ""
    max_depth: Optional[int] = Field(None, ge=0, le=20)


class PathsResponse(BaseModel):
    paths: List[PathEntry]


# ============ 저장 ============

class SaveResponse(BaseModel):
    saved: bool
    workflow_id: Optional[Union[int, str]] = None
    autosave_status: str
