"""
자동 저장

마지막 변경 후 일정 시간(기본 2초) 동안 추가 변경이 없으면 최신 상태를 한 번만 저장합니다.
저장된 상태와 해시가 같으면 저장하지 않습니다.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
import logging

from workflow_editor.config import settings
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.services.workflow_serializer import state_hash

logger = logging.getLogger(__name__)

SaveCallback = Callable[[WorkflowGraph], Awaitable[Any]]


class AutoSaveStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class AutoSaver:
    """
    디바운스 자동 저장기

    Args:
        graph_provider: 저장 시점의 최신 그래프를 돌려주는 함수
        save_callback: 그래프를 저장하는 코루틴 함수
        debounce_seconds: 대기 시간 (None이면 설정값)
        enabled: False면 notify_change는 무시되고 save_now만 동작
    """

    def __init__(
        self,
        graph_provider: Callable[[], WorkflowGraph],
        save_callback: SaveCallback,
        debounce_seconds: Optional[float] = None,
        enabled: bool = True,
    ):
        self._graph_provider = graph_provider
        self._save_callback = save_callback
        self.debounce_seconds = (
            settings.autosave_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.enabled = enabled

        self.status = AutoSaveStatus.IDLE
        self.last_saved_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._last_saved_hash: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None
        self._saving: Optional[asyncio.Task] = None
        # 디바운스 저장과 즉시 저장이 겹치지 않도록 한 번에 하나만 실행
        self._lock = asyncio.Lock()

    def mark_saved(self, graph: Optional[WorkflowGraph] = None) -> None:
        """현재(또는 주어진) 상태를 저장된 상태로 간주 (문서 로드 직후)"""
        self._last_saved_hash = state_hash(graph if graph is not None else self._graph_provider())

    @property
    def has_unsaved_changes(self) -> bool:
        return state_hash(self._graph_provider()) != self._last_saved_hash

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def notify_change(self) -> None:
        """변경 알림: 대기 중인 저장을 취소하고 타이머를 다시 시작"""
        if not self.enabled or not self.has_unsaved_changes:
            return

        self._cancel_pending()
        self.status = AutoSaveStatus.PENDING
        self._pending = asyncio.create_task(self._delayed_save())

    async def save_now(self) -> bool:
        """
        대기 없이 즉시 저장

        Returns:
            저장했으면 True, 변경이 없어 건너뛰었으면 False

        Raises:
            저장 콜백이 던진 예외 (status는 error로 바뀜)
        """
        self._cancel_pending()
        return await self._perform_save()

    async def run_exclusive(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """진행 중인 저장이 끝난 뒤 fn을 실행 (fn 실행 중에는 다른 저장이 시작되지 않음)"""
        async with self._lock:
            return await fn()

    async def _delayed_save(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # 저장 시작 후에는 변경 알림으로 취소되지 않음
        self._saving, self._pending = self._pending, None
        await self._perform_save(raise_errors=False)

    async def _perform_save(self, raise_errors: bool = True) -> bool:
        async with self._lock:
            return await self._save_latest(raise_errors)

    async def _save_latest(self, raise_errors: bool) -> bool:
        graph = self._graph_provider()
        current_hash = state_hash(graph)
        if current_hash == self._last_saved_hash:
            self.status = AutoSaveStatus.IDLE
            return False

        self.status = AutoSaveStatus.SAVING
        try:
            await self._save_callback(graph)
        except Exception as e:
            self.status = AutoSaveStatus.ERROR
            self.last_error = str(e)
            logger.error(f"Auto-save failed: {e}")
            if raise_errors:
                raise
            return False

        self._last_saved_hash = current_hash
        self.last_saved_at = datetime.now(timezone.utc)
        self.last_error = None
        self.status = AutoSaveStatus.SAVED
        logger.info(f"Workflow saved ({len(graph)} nodes, {len(graph.edges)} edges)")
        return True

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def aclose(self) -> None:
        """대기 중인 저장은 취소하고 진행 중인 저장은 끝날 때까지 대기"""
        pending = self._pending
        self._cancel_pending()
        if pending is not None:
            await asyncio.gather(pending, return_exceptions=True)
        if self._saving is not None and not self._saving.done():
            await asyncio.gather(self._saving, return_exceptions=True)
