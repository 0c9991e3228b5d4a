"""
Workflow Editor Engine - 메인 애플리케이션
"""
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from workflow_editor.config import settings
from workflow_editor.api.v1.endpoints import editor
from workflow_editor.core.exceptions import BaseAppException
from workflow_editor.api.exception_handlers import (
    base_app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler
)
from workflow_editor.core.logging_config import setup_logging, get_logger

# 구조화된 로깅 설정
setup_logging(
    log_level=settings.log_level,
    use_structured=settings.use_structured_logging
)
logger = get_logger(__name__)

# FastAPI 앱 생성
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="워크플로우 그래프 에디터 엔진 API",
    docs_url="/docs",
    redoc_url="/redoc"
)

# 글로벌 예외 핸들러 등록 (구체적인 것부터 등록)
app.add_exception_handler(BaseAppException, base_app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS 설정
cors_origins = settings.cors_origins
logger.info(f"CORS 허용 출처: {cors_origins}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API 라우터 등록
app.include_router(editor.router, prefix="/api/v1", tags=["워크플로우 에디터"])


@app.on_event("startup")
async def startup_event():
    """애플리케이션 시작 시 실행"""
    logger.info(f"{settings.app_name} v{settings.app_version} 시작")
    logger.info(f"디버그 모드: {settings.debug}")
    logger.info(f"워크플로우 백엔드: {settings.backend_base_url}")

    from workflow_editor.core.workflow.handler_registry import handler_registry
    logger.info(f"노드 핸들러 {len(handler_registry)}개 등록 완료")


@app.on_event("shutdown")
async def shutdown_event():
    """애플리케이션 종료 시 실행"""
    from workflow_editor.services.editor_session_service import editor_session_service
    await editor_session_service.close_all()
    logger.info(f"{settings.app_name} 종료")


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "Workflow Editor Engine API",
        "version": settings.app_version,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """헬스 체크 엔드포인트"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version
    }


@app.get("/api/v1/health")
async def api_health_check():
    """API 버전별 헬스 체크"""
    return {
        "status": "healthy",
        "api_version": "v1",
        "app_version": settings.app_version
    }
