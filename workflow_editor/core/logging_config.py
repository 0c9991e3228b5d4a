"""
에디터 엔진 로깅 설정

- ColoredFormatter: 터미널용 한 줄 포맷 (tty일 때만 색상)
- StructuredFormatter: 노드 상태 전이(log_type=node_status)와
  전체 실행 요약(log_type=workflow_run)을 별도 형식으로 출력
"""
import logging
import sys

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_PACKAGE_PREFIX = "workflow_editor."

# 라이브러리별 최소 로그 레벨
_QUIET_LOGGERS = {
    "uvicorn": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _short_logger_name(name: str) -> str:
    return name[len(_PACKAGE_PREFIX):] if name.startswith(_PACKAGE_PREFIX) else name


def _line(timestamp: str, level: str, logger_name: str, message: str) -> str:
    return f"{timestamp} | {level} | {_short_logger_name(logger_name):30s} | {message}"


class ColoredFormatter(logging.Formatter):
    """레벨별 색상 포매터"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8s}"
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelname, "")
            level = f"{color}\033[1m{level}{self.RESET}"
        return _line(self.formatTime(record, _TIME_FORMAT), level, record.name, record.getMessage())


class StructuredFormatter(logging.Formatter):
    """
    구조화된 로그 포매터

    extra로 전달된 log_type에 따라 포맷을 고릅니다.
    """

    WIDTH = 72

    STATUS_MARKS = {
        "initial": "⚪",
        "loading": "⏳",
        "success": "✅",
        "error": "❌",
    }

    LEVEL_MARKS = {
        "DEBUG": "🔍",
        "INFO": "ℹ️",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🚨",
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, _TIME_FORMAT)
        log_type = getattr(record, "log_type", None)

        if log_type == "node_status":
            return self._node_status(timestamp, record)
        if log_type == "workflow_run":
            return self._workflow_run(timestamp, record)

        mark = self.LEVEL_MARKS.get(record.levelname, "📝")
        return _line(timestamp, f"{mark} {record.levelname:8s}", record.name, record.getMessage())

    def _node_status(self, timestamp: str, record: logging.LogRecord) -> str:
        current = getattr(record, "status", "N/A")
        mark = self.STATUS_MARKS.get(current, "📝")
        previous = getattr(record, "previous_status", "N/A")
        node_id = getattr(record, "node_id", "N/A")
        return f"{timestamp} | {mark} NODE | [{node_id}] {previous} → {current}"

    def _workflow_run(self, timestamp: str, record: logging.LogRecord) -> str:
        path = getattr(record, "execution_path", [])
        failed = getattr(record, "failed_nodes", [])
        rule = "─" * self.WIDTH

        rows = [
            ("Timestamp", timestamp),
            ("Executed", f"{len(path)} nodes"),
            ("Path", " → ".join(path)[: self.WIDTH - 14]),
            ("Failed", ", ".join(failed) or "-"),
            ("Elapsed", f"{getattr(record, 'elapsed', 0.0):.3f}s"),
        ]
        body = [f"  {name:<9} : {value}" for name, value in rows]
        return "\n".join(["", rule, f"  🔁 WORKFLOW RUN - {record.getMessage()}", rule, *body, rule, ""])


def setup_logging(log_level: str = "INFO", use_structured: bool = True):
    """
    루트 로거에 stdout 핸들러 하나만 연결

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR, CRITICAL (대소문자 무관)
        use_structured: True면 StructuredFormatter, False면 ColoredFormatter
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(StructuredFormatter() if use_structured else ColoredFormatter())
    root_logger.addHandler(console_handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
