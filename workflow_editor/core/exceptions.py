"""
커스텀 예외 클래스 정의

에디터 엔진 전반에서 사용할 구체적인 예외 타입들을 정의합니다.
"""
from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """애플리케이션 기본 예외 클래스"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# 검증 관련 예외 (사용자 동작 시점에 동기적으로 보고, 그래프는 변경되지 않음)
# ============================================================================

class ValidationError(BaseAppException):
    """검증 관련 기본 예외"""
    pass


class InvalidInputError(ValidationError):
    """잘못된 입력값"""
    def __init__(self, message: str = "입력값이 올바르지 않습니다", **kwargs):
        super().__init__(message, error_code="INVALID_INPUT", **kwargs)


class NodeConfigError(ValidationError):
    """노드 설정 파싱/검증 실패"""
    def __init__(self, message: str = "노드 설정이 올바르지 않습니다", **kwargs):
        super().__init__(message, error_code="INVALID_NODE_CONFIG", **kwargs)


class PortConstraintError(ValidationError):
    """포트 개수 제약 위반"""
    def __init__(self, message: str = "포트를 더 이상 제거할 수 없습니다", **kwargs):
        super().__init__(message, error_code="PORT_CONSTRAINT", **kwargs)


class ResourceNotFoundError(BaseAppException):
    """리소스를 찾을 수 없음"""
    def __init__(self, message: str = "요청한 리소스를 찾을 수 없습니다", **kwargs):
        super().__init__(message, error_code="RESOURCE_NOT_FOUND", **kwargs)


class NodeNotFoundError(ResourceNotFoundError):
    """노드를 찾을 수 없음"""
    def __init__(self, message: str = "노드를 찾을 수 없습니다", **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = "NODE_NOT_FOUND"


# ============================================================================
# 워크플로우 실행 관련 예외
# ============================================================================

class WorkflowError(BaseAppException):
    """워크플로우 관련 기본 예외"""
    pass


class WorkflowValidationError(WorkflowError):
    """워크플로우 구성 오류 (시작 노드 없음 등)"""
    def __init__(self, message: str = "워크플로우 설정이 올바르지 않습니다", **kwargs):
        super().__init__(message, error_code="WORKFLOW_VALIDATION_ERROR", **kwargs)


class WorkflowAlreadyRunningError(WorkflowError):
    """전체 실행이 이미 진행 중"""
    def __init__(self, message: str = "워크플로우가 이미 실행 중입니다", **kwargs):
        super().__init__(message, error_code="WORKFLOW_ALREADY_RUNNING", **kwargs)


class NodeExecutionError(WorkflowError):
    """노드 실행 중 전제 조건 실패 (URL 누락 등)"""
    def __init__(self, message: str = "노드 실행 중 오류가 발생했습니다", **kwargs):
        super().__init__(message, error_code="NODE_EXECUTION_ERROR", **kwargs)


class NotImplementedNodeError(WorkflowError):
    """아직 구현되지 않은 노드 종류 (네트워크 호출 없이 즉시 실패)"""
    def __init__(self, message: str = "아직 구현되지 않은 노드입니다", **kwargs):
        super().__init__(message, error_code="NODE_NOT_IMPLEMENTED", **kwargs)


# ============================================================================
# 외부 호출 관련 예외
# ============================================================================

class RemoteCallError(BaseAppException):
    """외부 HTTP 호출 실패"""
    def __init__(self, message: str = "외부 호출 중 오류가 발생했습니다", payload: Any = None, **kwargs):
        super().__init__(message, error_code="REMOTE_CALL_ERROR", **kwargs)
        self.payload = payload


class PersistenceError(RemoteCallError):
    """워크플로우 저장 백엔드 호출 실패"""
    def __init__(self, message: str = "워크플로우 저장 중 오류가 발생했습니다", **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = "PERSISTENCE_ERROR"
