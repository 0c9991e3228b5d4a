"""
Workflow 관련 스키마

에디터 그래프(노드/엣지), 노드 종류별 설정, 경로 항목, 저장 문서 형태를 정의합니다.
"""
from pydantic import BaseModel, Field, ConfigDict, SerializeAsAny, ValidationInfo, field_validator
from typing import Optional, List, Dict, Any, Type, Union
from enum import Enum

from workflow_editor.core.workflow.base_node import NodeKind, NodeStatus


class NodePosition(BaseModel):
    """노드 위치"""
    x: float = Field(..., description="X 좌표")
    y: float = Field(..., description="Y 좌표")


class PathType(str, Enum):
    """경로 항목 타입"""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    OBJECT = "object"
    ARRAY = "array"
    CONSTANT = "constant"
    MAPPED = "mapped"


class PathEntry(BaseModel):
    """샘플 출력에서 추출한 주소 지정 가능한 경로"""
    path: str = Field(..., description="점(.)으로 구분된 경로")
    type: PathType = Field(..., description="값 타입")
    preview: str = Field("", description="UI 미리보기 문자열")


# ============ 노드 종류별 설정 ============

class ResponseMappingEntry(BaseModel):
    """응답 필드 재노출 정의 (_mapped.<alias>)"""
    model_config = ConfigDict(extra="allow")

    alias: str = Field("", description="재노출 이름")
    path: str = Field("", description="응답 본문 내 경로")


class NodeConfig(BaseModel):
    """노드 설정 기본 클래스 (알 수 없는 키도 그대로 보존)"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """저장/전송용 dict (설정된 키만, camelCase)"""
        return self.model_dump(by_alias=True, exclude_unset=True)


class StartConfig(NodeConfig):
    value: Optional[Any] = Field(None, description="시작 값")
    test_payload: Optional[Any] = Field(None, alias="testPayload", description="웹훅 트리거 테스트 페이로드")


class ApiActionConfig(NodeConfig):
    url: Optional[str] = Field(None, description="요청 URL")
    method: Optional[str] = Field(None, description="HTTP 메서드 (실행 시 기본값 POST)")
    headers: Dict[str, Any] = Field(default_factory=dict, description="추가 요청 헤더")
    request_body: Optional[Any] = Field(None, alias="requestBody", description="요청 본문 (POST/PUT/PATCH)")
    response_mapping: List[ResponseMappingEntry] = Field(
        default_factory=list, alias="responseMapping", description="응답 재노출 정의"
    )
    discovered_paths: List[Dict[str, Any]] = Field(
        default_factory=list, alias="discoveredPaths", description="테스트 호출로 발견된 경로"
    )


class EmailActionConfig(NodeConfig):
    template: Optional[str] = Field(None, description="이메일 템플릿 이름")
    recipients: List[str] = Field(default_factory=list, description="수신자 목록")
    subject: Optional[str] = Field(None, description="제목")
    custom_data: Dict[str, Any] = Field(default_factory=dict, alias="customData", description="템플릿 데이터")


class ConditionConfig(NodeConfig):
    operator: str = Field("equals", description="비교 연산자")
    pass_when: str = Field("true", alias="passWhen", description="통과 조건")
    value_a_mode: str = Field("static", alias="valueAMode")
    value_b_mode: str = Field("static", alias="valueBMode")
    value_a_static: Any = Field("", alias="valueAStatic")
    value_b_static: Any = Field("", alias="valueBStatic")
    value_a_path: str = Field("", alias="valueAPath")
    value_b_path: str = Field("", alias="valueBPath")


class ConstantConfig(NodeConfig):
    value: Optional[Any] = Field(None, description="상수 값")
    value_type: Optional[str] = Field(None, alias="valueType", description="값 타입 (string, number, datetime, richtext, ...)")
    target_field: Optional[str] = Field(None, alias="targetField", description="대상 노드의 입력 필드")
    datetime_option: Optional[str] = Field(
        None, alias="datetimeOption", description="now, today, tomorrow, in_1_hour, custom_offset, fixed, ..."
    )
    offset_amount: Optional[int] = Field(None, alias="offsetAmount", description="custom_offset 크기")
    offset_unit: Optional[str] = Field(None, alias="offsetUnit", description="minutes, hours, days")
    fixed_date_time: Optional[str] = Field(None, alias="fixedDateTime", description="fixed 옵션의 ISO 8601 시각")
    output_format: Optional[str] = Field(None, alias="outputFormat", description="richtext 출력 형식 (html, plaintext)")


class MergeConfig(NodeConfig):
    separator: str = Field("", description="값 사이 구분자")


class TemplateConfig(NodeConfig):
    template: str = Field("", description="${inputN} 자리표시자를 포함한 템플릿")


class GoogleActionConfig(NodeConfig):
    """Google 연동 노드 공통 설정"""
    operation: Optional[str] = Field(None, description="수행할 작업")
    dynamic_fields: Dict[str, bool] = Field(
        default_factory=dict, alias="dynamicFields", description="필드별 동적 바인딩 여부"
    )
    dynamic_field_paths: Dict[str, Any] = Field(
        default_factory=dict, alias="dynamicFieldPaths", description="필드별 {nodeId, path}"
    )
    response_mapping: List[ResponseMappingEntry] = Field(
        default_factory=list, alias="responseMapping"
    )


class GoogleCalendarConfig(GoogleActionConfig):
    calendar_id: Optional[str] = Field(None, alias="calendarId")


class GoogleDocsConfig(GoogleActionConfig):
    document_id: Optional[str] = Field(None, alias="documentId")


CONFIG_MODELS: Dict[NodeKind, Type[NodeConfig]] = {
    NodeKind.START: StartConfig,
    NodeKind.WEBHOOK_TRIGGER: StartConfig,
    NodeKind.API_ACTION: ApiActionConfig,
    NodeKind.ACTION: ApiActionConfig,
    NodeKind.EMAIL_ACTION: EmailActionConfig,
    NodeKind.CONDITION: ConditionConfig,
    NodeKind.CONSTANT: ConstantConfig,
    NodeKind.MERGE: MergeConfig,
    NodeKind.TEMPLATE: TemplateConfig,
    NodeKind.GOOGLE_CALENDAR_ACTION: GoogleCalendarConfig,
    NodeKind.GOOGLE_DOCS_ACTION: GoogleDocsConfig,
}


def config_model_for(kind: Optional[NodeKind]) -> Type[NodeConfig]:
    return CONFIG_MODELS.get(kind, NodeConfig)


def parse_node_config(kind: Optional[NodeKind], raw: Any) -> NodeConfig:
    """
    노드 종류에 맞는 설정 모델로 변환

    Args:
        kind: 노드 종류
        raw: dict 또는 NodeConfig 인스턴스 (None이면 빈 설정)

    Returns:
        종류별 NodeConfig 인스턴스

    Raises:
        pydantic.ValidationError: 설정 형식이 맞지 않는 경우
    """
    model_cls = config_model_for(kind)
    if raw is None:
        raw = {}
    if isinstance(raw, NodeConfig):
        if type(raw) is model_cls:
            return raw
        raw = raw.to_dict()
    return model_cls.model_validate(raw)


# ============ 그래프 ============

class WorkflowNode(BaseModel):
    """에디터 그래프의 노드"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., frozen=True, description="노드 ID (그래프 내 고유)")
    kind: NodeKind = Field(..., frozen=True, description="노드 종류 (생성 후 변경 불가)")
    position: NodePosition = Field(..., description="캔버스 위치")
    label: str = Field("", description="표시 이름")
    description: str = Field("", description="노드 설명")
    config: SerializeAsAny[NodeConfig] = Field(
        default_factory=NodeConfig, validate_default=True, description="종류별 설정"
    )
    inputs: Optional[List[str]] = Field(None, description="입력 포트 ID 목록 (join/merge/template)")
    outputs: Optional[List[str]] = Field(None, description="출력 포트 ID 목록 (branch)")
    status: NodeStatus = Field(NodeStatus.INITIAL, description="실행 상태")
    last_output: Optional[Any] = Field(None, alias="lastOutput")
    last_error: Optional[Any] = Field(None, alias="lastError")
    condition_result: Optional[bool] = Field(None, alias="conditionResult")
    last_evaluation: Optional[Dict[str, Any]] = Field(None, alias="lastEvaluation")

    @field_validator("config", mode="before")
    @classmethod
    def _parse_config(cls, value: Any, info: ValidationInfo) -> NodeConfig:
        return parse_node_config(info.data.get("kind"), value)


class WorkflowEdge(BaseModel):
    """노드 사이 방향 있는 연결"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="엣지 ID")
    source: str = Field(..., description="출력 노드 ID")
    source_handle: Optional[str] = Field(None, alias="sourceHandle", description="출력 포트")
    target: str = Field(..., description="입력 노드 ID")
    target_handle: Optional[str] = Field(None, alias="targetHandle", description="입력 포트")


class ConnectRequest(BaseModel):
    """연결 요청"""
    model_config = ConfigDict(populate_by_name=True)

    source: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target: str
    target_handle: Optional[str] = Field(None, alias="targetHandle")


# ============ 저장 문서 형태 ============

class PersistedNode(BaseModel):
    """저장 백엔드의 노드 형태"""
    model_config = ConfigDict(extra="allow")

    node_id: Optional[str] = Field(None, description="노드 ID (없으면 로드 시 재생성)")
    type: Optional[str] = Field(None, description="노드 종류")
    position: Optional[NodePosition] = Field(None, description="캔버스 위치")
    data: Dict[str, Any] = Field(default_factory=dict, description="type/label/config/포트")


class PersistedConnection(BaseModel):
    """저장 백엔드의 연결 형태"""
    model_config = ConfigDict(extra="allow")

    connection_id: Optional[str] = Field(None, description="연결 ID (없으면 로드 시 재생성)")
    source_node_id: str
    target_node_id: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class WorkflowDocument(BaseModel):
    """저장 백엔드와 주고받는 워크플로우 문서"""
    model_config = ConfigDict(extra="allow")

    id: Optional[Union[int, str]] = Field(None, description="백엔드 워크플로우 ID")
    name: str = Field(..., min_length=1, max_length=255, description="워크플로우 이름")
    description: Optional[str] = Field(None, description="설명")
    is_active: bool = Field(True, description="활성화 여부")
    nodes: List[PersistedNode] = Field(default_factory=list)
    connections: List[PersistedConnection] = Field(default_factory=list)
