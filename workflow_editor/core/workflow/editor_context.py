"""
에디터 컨텍스트

테마와 단축키 포트를 전역 상태 대신 그래프 편집 세션 생성 시 명시적으로 전달합니다.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
import logging

logger = logging.getLogger(__name__)

ShortcutHandler = Callable[[], Any]

# 선택된 엣지를 지우는 키
DELETE_KEYS = ("Delete", "Backspace")


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class KeyboardShortcutPort(Protocol):
    """단축키 바인딩 인터페이스"""

    def bind(self, key: str, handler: ShortcutHandler) -> Callable[[], None]:
        """키에 핸들러 연결, 해제 함수 반환"""


class InMemoryShortcuts:
    """
    화면 없이 동작하는 단축키 포트

    Example:
        >>> shortcuts = InMemoryShortcuts()
        >>> unbind = shortcuts.bind("Delete", lambda: print("deleted"))
        >>> shortcuts.press("Delete")
        deleted
        1
    """

    def __init__(self):
        self._bindings: Dict[str, List[ShortcutHandler]] = {}

    def bind(self, key: str, handler: ShortcutHandler) -> Callable[[], None]:
        self._bindings.setdefault(key, []).append(handler)

        def unbind() -> None:
            handlers = self._bindings.get(key, [])
            if handler in handlers:
                handlers.remove(handler)

        return unbind

    def press(self, key: str) -> int:
        """
        키 입력 전달

        Returns:
            실행된 핸들러 수
        """
        handlers = list(self._bindings.get(key, []))
        for handler in handlers:
            handler()
        return len(handlers)

    def bound_keys(self) -> List[str]:
        return [key for key, handlers in self._bindings.items() if handlers]


class EditorContext:
    """
    편집 세션 컨텍스트

    Args:
        theme: "light" 또는 "dark"
        shortcuts: 단축키 포트 (없으면 단축키를 연결하지 않음)
    """

    def __init__(
        self,
        theme: Theme = Theme.LIGHT,
        shortcuts: Optional[KeyboardShortcutPort] = None,
    ):
        self.theme = Theme(theme)
        self.shortcuts = shortcuts
        self._unbinders: List[Callable[[], None]] = []

    @property
    def is_dark(self) -> bool:
        return self.theme == Theme.DARK

    def set_theme(self, theme: Theme) -> None:
        self.theme = Theme(theme)
        logger.debug(f"Editor theme changed: {self.theme.value}")

    def bind_edge_deletion(self, delete_selected_edge: ShortcutHandler) -> None:
        """Delete/Backspace 키에 선택된 엣지 삭제 연결"""
        if self.shortcuts is None:
            return
        for key in DELETE_KEYS:
            self._unbinders.append(self.shortcuts.bind(key, delete_selected_edge))

    def close(self) -> None:
        """연결한 단축키 해제"""
        for unbind in self._unbinders:
            unbind()
        self._unbinders.clear()
