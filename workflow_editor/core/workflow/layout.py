"""
자동 배치

레이아웃 엔진은 노드/엣지를 받아 노드별 새 위치를 돌려주는 외부 변환기로 취급합니다.
auto_layout은 돌려받은 위치를 검증 없이 적용합니다.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Dict, List, Optional, Protocol
import logging

from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.schemas.workflow import NodePosition, WorkflowEdge, WorkflowNode

logger = logging.getLogger(__name__)

NODE_WIDTH = 180
NODE_HEIGHT = 70
NODE_SPACING = 80
LAYER_SPACING = 100


class LayoutEngine(Protocol):
    """노드 배치 엔진 인터페이스"""

    def layout(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> Dict[str, NodePosition]:
        """노드 ID별 새 위치"""


def auto_layout(graph: WorkflowGraph, engine: Optional[LayoutEngine] = None) -> int:
    """
    레이아웃 엔진 결과를 그래프에 적용

    Returns:
        위치가 바뀐 노드 수 (그래프에 없는 ID는 무시)
    """
    engine = engine or LayeredLayoutEngine()
    positions = engine.layout(graph.nodes, graph.edges)

    moved = 0
    for node_id, position in positions.items():
        if graph.move_node(node_id, position):
            moved += 1

    logger.info(f"Auto layout applied to {moved} nodes")
    return moved


class LayeredLayoutEngine:
    """
    계층형 배치 (최장 경로 기준 계층 결정)

    시작 노드(들어오는 엣지 없음)를 첫 계층에 두고, 각 노드는 선행 노드 계층 중 최댓값 + 1 계층에 둡니다.
    순환에 속해 계층을 정할 수 없는 노드는 마지막 계층 다음에 둡니다.

    Args:
        direction: "DOWN"(위에서 아래) 또는 "RIGHT"(왼쪽에서 오른쪽)
    """

    def __init__(
        self,
        direction: str = "DOWN",
        node_spacing: float = NODE_SPACING,
        layer_spacing: float = LAYER_SPACING,
    ):
        direction = direction.upper()
        if direction not in ("DOWN", "RIGHT"):
            raise ValueError(f"Unsupported layout direction: {direction}")
        self.direction = direction
        self.node_spacing = node_spacing
        self.layer_spacing = layer_spacing

    def _assign_layers(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> Dict[str, int]:
        node_ids = [node.id for node in nodes]
        known = set(node_ids)
        successors: Dict[str, List[str]] = defaultdict(list)
        in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}

        for edge in edges:
            if edge.source in known and edge.target in known and edge.source != edge.target:
                successors[edge.source].append(edge.target)
                in_degree[edge.target] += 1

        layers: Dict[str, int] = {}
        queue = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
        for node_id in queue:
            layers[node_id] = 0

        while queue:
            node_id = queue.popleft()
            for target in successors[node_id]:
                layers[target] = max(layers.get(target, 0), layers[node_id] + 1)
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        next_layer = max(layers.values(), default=-1) + 1
        for node_id in node_ids:
            if in_degree[node_id] > 0:
                layers[node_id] = max(layers.get(node_id, 0), next_layer)
        return layers

    def layout(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> Dict[str, NodePosition]:
        layers = self._assign_layers(nodes, edges)

        by_layer: Dict[int, List[str]] = defaultdict(list)
        for node in nodes:
            by_layer[layers[node.id]].append(node.id)

        positions: Dict[str, NodePosition] = {}
        for layer, node_ids in by_layer.items():
            for index, node_id in enumerate(node_ids):
                if self.direction == "DOWN":
                    x = index * (NODE_WIDTH + self.node_spacing)
                    y = layer * (NODE_HEIGHT + self.layer_spacing)
                else:
                    x = layer * (NODE_WIDTH + self.layer_spacing)
                    y = index * (NODE_HEIGHT + self.node_spacing)
                positions[node_id] = NodePosition(x=x, y=y)
        return positions
