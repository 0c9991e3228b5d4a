"""
에디터 엔진 설정

환경 변수 또는 .env 파일(ENV_FILE, 기본 .env.local)에서 읽습니다.
"""
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List
import os

# 개발 환경에서 항상 허용하는 프론트엔드 출처
DEV_FRONTEND_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


class Settings(BaseSettings):
    """에디터 엔진 설정"""

    app_name: str = "Workflow Editor Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "info"
    use_structured_logging: bool = True
    environment: str = "development"  # development, staging, production

    # 저장/이메일/Google 연동을 담당하는 워크플로우 백엔드
    backend_base_url: str = "http://localhost:8080"
    backend_api_token: str = ""
    http_timeout_seconds: float = 30.0

    # 편집기 동작
    autosave_debounce_seconds: float = 2.0
    simulated_node_delay_seconds: float = 0.5  # 백엔드 연동 전 노드의 대기 시간
    path_extractor_max_depth: int = 5
    binding_max_raw_paths: int = 15
    history_max_length: int = 50

    # 쉼표로 구분한 프론트엔드 URL
    frontend_url: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """
        CORS 허용 출처

        프로덕션은 frontend_url만, 그 외 환경은 localhost 개발 서버를 더하고
        frontend_url이 비어 있으면 모두 허용합니다.
        """
        configured = [url.strip() for url in self.frontend_url.split(",") if url.strip()]
        if self.is_production:
            return configured
        if not configured:
            return ["*"]
        return sorted(set(configured + DEV_FRONTEND_ORIGINS))

    model_config = ConfigDict(
        env_file=os.getenv("ENV_FILE", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
