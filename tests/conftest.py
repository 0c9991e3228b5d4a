"""
pytest 공통 픽스처 및 설정
"""
import asyncio
import json
import pytest
import pytest_asyncio
import httpx
from httpx import ASGITransport, AsyncClient

from workflow_editor.main import app
from workflow_editor.core.workflow.base_node import NodeKind
from workflow_editor.core.workflow.executor import WorkflowExecutor
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.core.workflow.service_container import HTTP_CLIENT, ServiceContainer
from workflow_editor.schemas.workflow import NodePosition, WorkflowEdge, WorkflowNode
from workflow_editor.services.editor_session_service import (
    EditorSessionService,
    get_editor_session_service,
)
from workflow_editor.services.workflow_api_service import WorkflowApiClient


BACKEND_BASE_URL = "http://backend.test"

ECHO_BODY = {
    "message": "hello",
    "items": [{"id": 1, "name": "first"}],
}


class FakeBackend:
    """
    워크플로우 백엔드 대역

    - GET/POST /echo: 고정 본문 또는 요청 본문 반환
    - /fail: 500 + {"error": "boom"}
    - /down: 연결 실패
    - POST /api/workflows/actions/email: 이메일 발송 성공
    - /api/workflows[/{id}]: 메모리 문서 저장소
    - write_delay: POST/PUT 응답 지연 (초)
    """

    def __init__(self):
        self.requests = []
        self.bodies = []
        self.write_delay = 0.0
        self.workflows = {}
        self.next_id = 101

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        body = json.loads(request.content) if request.content else None
        self.bodies.append((request.method, path, body))

        if path == "/echo":
            if request.method == "GET":
                return httpx.Response(200, json=ECHO_BODY)
            return httpx.Response(200, json={"received": body})
        if path == "/fail":
            return httpx.Response(500, json={"error": "boom"})
        if path == "/down":
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/api/workflows/actions/email":
            return httpx.Response(200, json={"success": True, "messageId": "msg-1"})
        if path.startswith("/api/workflows"):
            return self._workflows(request.method, path, body)
        return httpx.Response(404, json={"error": "not found"})

    def _workflows(self, method: str, path: str, body):
        parts = [part for part in path.split("/") if part]
        workflow_id = parts[2] if len(parts) > 2 else None

        if method == "GET" and workflow_id is None:
            return httpx.Response(200, json={"data": list(self.workflows.values())})
        if method == "POST" and workflow_id is None:
            document = {**body, "id": self.next_id}
            self.workflows[str(self.next_id)] = document
            self.next_id += 1
            return httpx.Response(201, json=document)

        if workflow_id not in self.workflows:
            return httpx.Response(404, json={"error": "workflow not found"})
        if method == "GET":
            return httpx.Response(200, json={"data": self.workflows[workflow_id]})
        if method == "PUT":
            document = {**body, "id": int(workflow_id)}
            self.workflows[workflow_id] = document
            return httpx.Response(200, json=document)
        if method == "DELETE":
            del self.workflows[workflow_id]
            return httpx.Response(204)
        return httpx.Response(405)

    async def handle_async(self, request: httpx.Request) -> httpx.Response:
        if self.write_delay and request.method in ("POST", "PUT"):
            await asyncio.sleep(self.write_delay)
        return self.handle(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handle_async),
            base_url=BACKEND_BASE_URL,
        )


@pytest.fixture
def fake_backend():
    """테스트용 백엔드 대역"""
    return FakeBackend()


@pytest_asyncio.fixture
async def mock_http_client(fake_backend):
    """MockTransport 기반 httpx.AsyncClient"""
    client = fake_backend.client()
    yield client
    await client.aclose()


@pytest.fixture
def services(mock_http_client):
    """HTTP 클라이언트가 등록된 서비스 컨테이너"""
    container = ServiceContainer()
    container.register(HTTP_CLIENT, mock_http_client)
    return container


@pytest.fixture
def make_node():
    """WorkflowNode 생성 헬퍼"""
    def _make(node_id, kind, config=None, **kwargs):
        return WorkflowNode(
            id=node_id,
            kind=NodeKind(kind),
            position=kwargs.pop("position", NodePosition(x=0, y=0)),
            config=config or {},
            **kwargs,
        )
    return _make


@pytest.fixture
def make_edge():
    """WorkflowEdge 생성 헬퍼 (ID는 source__target)"""
    def _make(source, target, source_handle=None, target_handle=None):
        return WorkflowEdge(
            id=f"{source}__{target}",
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )
    return _make


@pytest.fixture
def executor_factory(services):
    """대기 없이 실행하는 실행 시뮬레이터 생성 헬퍼"""
    def _make(graph: WorkflowGraph, delay_seconds: float = 0):
        return WorkflowExecutor(graph, services=services, delay_seconds=delay_seconds)
    return _make


@pytest.fixture
def session_service(fake_backend):
    """백엔드 대역에 연결된 세션 저장소"""
    def services_factory():
        container = ServiceContainer()
        container.register(HTTP_CLIENT, fake_backend.client())
        return container

    return EditorSessionService(
        api_client_factory=lambda: WorkflowApiClient(client=fake_backend.client()),
        services_factory=services_factory,
        delay_seconds=0,
    )


@pytest_asyncio.fixture
async def async_client(session_service):
    """FastAPI AsyncClient 픽스처"""
    app.dependency_overrides[get_editor_session_service] = lambda: session_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    await session_service.close_all()


@pytest.fixture
def echo_body():
    """GET /echo 응답 본문"""
    return ECHO_BODY
