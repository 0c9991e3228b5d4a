"""
FastAPI 글로벌 예외 핸들러

커스텀 예외를 적절한 HTTP 응답으로 변환합니다.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from workflow_editor.core.exceptions import (
    BaseAppException,
    # Validation exceptions
    ValidationError,
    InvalidInputError,
    NodeConfigError,
    PortConstraintError,
    # Not found
    ResourceNotFoundError,
    NodeNotFoundError,
    # Workflow exceptions
    WorkflowError,
    WorkflowValidationError,
    WorkflowAlreadyRunningError,
    NodeExecutionError,
    NotImplementedNodeError,
    # Remote call exceptions
    RemoteCallError,
    PersistenceError,
)
from workflow_editor.core.workflow.status_machine import InvalidStatusTransitionError
from workflow_editor.services.editor_session_service import SessionNotFoundError

logger = logging.getLogger(__name__)


# 예외 타입별 HTTP 상태 코드 매핑
EXCEPTION_STATUS_MAP = {
    # 400 Bad Request
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    NodeConfigError: status.HTTP_400_BAD_REQUEST,
    PortConstraintError: status.HTTP_400_BAD_REQUEST,
    WorkflowValidationError: status.HTTP_400_BAD_REQUEST,
    NodeExecutionError: status.HTTP_400_BAD_REQUEST,

    # 404 Not Found
    ResourceNotFoundError: status.HTTP_404_NOT_FOUND,
    NodeNotFoundError: status.HTTP_404_NOT_FOUND,
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,

    # 409 Conflict
    WorkflowAlreadyRunningError: status.HTTP_409_CONFLICT,
    InvalidStatusTransitionError: status.HTTP_409_CONFLICT,

    # 501 Not Implemented
    NotImplementedNodeError: status.HTTP_501_NOT_IMPLEMENTED,

    # 502 Bad Gateway (외부 서비스 오류)
    RemoteCallError: status.HTTP_502_BAD_GATEWAY,
    PersistenceError: status.HTTP_502_BAD_GATEWAY,

    # 503 Service Unavailable
    WorkflowError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_code(exception: BaseAppException) -> int:
    """
    예외 객체에 대한 HTTP 상태 코드 반환

    정확한 타입이 없으면 상위 클래스 순서로 찾고, 그래도 없으면 500 반환
    """
    for exception_type in type(exception).__mro__:
        if exception_type in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[exception_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def base_app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
    """
    모든 BaseAppException 및 하위 클래스 처리
    """
    status_code = get_http_status_code(exc)

    if status_code >= 500 and status_code not in (status.HTTP_501_NOT_IMPLEMENTED, status.HTTP_502_BAD_GATEWAY):
        logger.error(
            f"Server error: {exc.message}",
            extra={
                "error_code": exc.error_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method
            },
            exc_info=True
        )
        # 클라이언트에는 일반적인 메시지만 전달
        response_body = {
            "error": "Internal Server Error",
            "message": "서버 내부 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
            "error_code": exc.error_code,
            "path": request.url.path
        }
    else:
        logger.warning(
            f"Client error: {exc.message}",
            extra={
                "error_code": exc.error_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method
            }
        )
        response_body = {
            "error": exc.__class__.__name__,
            "message": exc.message,
            "error_code": exc.error_code,
            "details": exc.details,
            "path": request.url.path
        }
        payload = getattr(exc, "payload", None)
        if payload is not None:
            response_body["payload"] = payload

    return JSONResponse(
        status_code=status_code,
        content=response_body
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    요청 본문 검증 오류 처리
    """
    logger.warning(
        f"Validation error: {exc.errors()}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "ValidationError",
            "message": "요청 데이터 검증에 실패했습니다",
            "details": jsonable_errors(exc),
            "path": request.url.path
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """ctx에 예외 객체가 들어 있는 경우 문자열로 변환"""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    HTTPException 처리
    """
    logger.info(
        f"HTTP exception: {exc.status_code} - {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "message": exc.detail,
            "path": request.url.path
        }
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    예상하지 못한 예외 처리
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "예기치 않은 오류가 발생했습니다. 관리자에게 문의해주세요.",
            "path": request.url.path
        }
    )
