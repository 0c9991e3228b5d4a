"""
노드 종류별 기본값

노드 추가 시 사용할 기본 라벨, 기본 설정, 기본 포트 목록과 포트 ID 규칙을 정의합니다.
"""

from __future__ import annotations

import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

from workflow_editor.core.workflow.base_node import (
    NodeKind,
    INPUT_PORT_KINDS,
    OUTPUT_PORT_KINDS,
)

INPUT_PORT_PREFIX = "input"
OUTPUT_PORT_PREFIX = "output"

_PORT_ID_PATTERN = re.compile(r"^(input|output)-(\d+)$")

NODE_KIND_LABELS: Dict[NodeKind, str] = {
    NodeKind.START: "Initial",
    NodeKind.WEBHOOK_TRIGGER: "Webhook Trigger",
    NodeKind.API_ACTION: "API",
    NodeKind.ACTION: "API",
    NodeKind.EMAIL_ACTION: "Email",
    NodeKind.DATABASE_ACTION: "Database",
    NodeKind.SCRIPT_ACTION: "Script",
    NodeKind.WEBHOOK_ACTION: "Webhook",
    NodeKind.GOOGLE_CALENDAR_ACTION: "Google Calendar",
    NodeKind.GOOGLE_DOCS_ACTION: "Google Docs",
    NodeKind.CONDITION: "Condition",
    NodeKind.CONSTANT: "Constant",
    NodeKind.BRANCH: "Branch",
    NodeKind.JOIN: "Join",
    NodeKind.MERGE: "Merge",
    NodeKind.TEMPLATE: "Template",
    NodeKind.END: "Output",
}


def generate_node_id(kind: NodeKind) -> str:
    return f"{kind.value}_{uuid.uuid4().hex[:12]}"


def default_label(kind: NodeKind) -> str:
    return f"{NODE_KIND_LABELS.get(kind, 'Node')} Node"


def default_config(kind: NodeKind) -> Dict[str, Any]:
    """노드 추가 시 기본 설정 (merge는 빈 구분자를 명시적으로 가짐)"""
    if kind == NodeKind.MERGE:
        return {"separator": ""}
    return {}


def default_ports(kind: NodeKind) -> Tuple[Optional[List[str]], Optional[List[str]]]:
    """
    기본 포트 목록

    Returns:
        (inputs, outputs): 포트 목록을 소유하지 않는 노드는 None
    """
    inputs = [f"{INPUT_PORT_PREFIX}-1", f"{INPUT_PORT_PREFIX}-2"] if kind in INPUT_PORT_KINDS else None
    outputs = [f"{OUTPUT_PORT_PREFIX}-1", f"{OUTPUT_PORT_PREFIX}-2"] if kind in OUTPUT_PORT_KINDS else None
    return inputs, outputs


def next_port_id(existing: List[str], prefix: str) -> str:
    """
    새 포트 ID 생성 (기존 최대 번호 + 1)

    Example:
        >>> next_port_id(["input-1", "input-3"], "input")
        'input-4'
    """
    highest = 0
    for port_id in existing:
        match = _PORT_ID_PATTERN.match(port_id)
        if match and match.group(1) == prefix:
            highest = max(highest, int(match.group(2)))
    return f"{prefix}-{highest + 1}"
