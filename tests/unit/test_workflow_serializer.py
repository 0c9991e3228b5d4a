import pytest

from workflow_editor.core.exceptions import InvalidInputError, NodeConfigError
from workflow_editor.core.workflow.base_node import NodeKind, NodeStatus
from workflow_editor.core.workflow.graph import WorkflowGraph
from workflow_editor.schemas.workflow import ConnectRequest, NodePosition
from workflow_editor.services.workflow_serializer import (
    document_payload,
    from_document,
    state_hash,
    to_document,
)


@pytest.fixture
def graph():
    graph = WorkflowGraph()
    start = graph.add_node(NodeKind.START, NodePosition(x=0, y=0))
    api = graph.add_node(NodeKind.API_ACTION, NodePosition(x=0, y=150), label="주문 조회")
    merge = graph.add_node(NodeKind.MERGE, NodePosition(x=0, y=300))
    graph.update_node_config(api, {"url": "https://api.example.com/orders", "method": "GET"})
    graph.connect(ConnectRequest(source=start, target=api))
    graph.connect(ConnectRequest(source=api, target=merge, target_handle="input-1"))
    return graph


def test_to_document_shape(graph):
    document = to_document(graph, name="주문 알림", description="테스트", workflow_id=12)

    assert document.id == 12
    assert document.name == "주문 알림"
    assert len(document.nodes) == 3
    assert len(document.connections) == 2

    api = next(node for node in document.nodes if node.type == "apiAction")
    assert api.data["type"] == "apiAction"
    assert api.data["label"] == "주문 조회"
    assert api.data["config"] == {"url": "https://api.example.com/orders", "method": "GET"}
    assert "inputs" not in api.data
    assert "status" not in api.data

    merge = next(node for node in document.nodes if node.type == "merge")
    assert merge.data["inputs"] == ["input-1", "input-2"]

    connection = document.connections[1]
    assert connection.source_node_id == api.node_id
    assert connection.target_handle == "input-1"


def test_round_trip_keeps_ids_and_drops_execution_state(graph):
    api = next(node for node in graph if node.kind == NodeKind.API_ACTION)
    api.status = NodeStatus.SUCCESS
    api.last_output = {"id": 1}

    restored = from_document(to_document(graph, name="wf"))

    assert [node.id for node in restored] == [node.id for node in graph]
    assert [edge.id for edge in restored.edges] == [edge.id for edge in graph.edges]
    restored_api = restored.get_node(api.id)
    assert restored_api.config.to_dict() == api.config.to_dict()
    assert restored_api.position == api.position
    assert restored_api.status == NodeStatus.INITIAL
    assert restored_api.last_output is None


def test_from_document_dict_with_legacy_fields():
    document = {
        "name": "legacy",
        "nodes": [
            {"node_id": "n1", "type": "constant", "data": {"config": '{"value": 3}'}},
            {"position": {"x": 1, "y": 2}, "data": {"label": "old action", "config": {"url": "/x"}}},
        ],
        "connections": [
            {"source_node_id": "n1", "target_node_id": "ghost"},
        ],
    }

    graph = from_document(document)

    constant = graph.get_node("n1")
    assert constant.config.to_dict() == {"value": 3}
    assert constant.label == "Constant Node"

    legacy = [node for node in graph if node.id != "n1"][0]
    assert legacy.kind == NodeKind.ACTION
    assert legacy.id.startswith("action_")
    assert legacy.config.to_dict() == {"url": "/x"}
    # 없는 노드를 가리키는 연결은 건너뜀
    assert graph.edges == []


def test_from_document_generates_missing_connection_id():
    document = {
        "name": "wf",
        "nodes": [
            {"node_id": "a", "type": "start"},
            {"node_id": "b", "type": "end"},
        ],
        "connections": [{"source_node_id": "a", "target_node_id": "b"}],
    }

    graph = from_document(document)

    assert [edge.id for edge in graph.edges] == ["edge-a__b"]


def test_from_document_errors():
    with pytest.raises(InvalidInputError):
        from_document({"nodes": []})
    with pytest.raises(InvalidInputError):
        from_document({"name": "wf", "nodes": [{"node_id": "x", "type": "spreadsheet"}]})
    with pytest.raises(NodeConfigError):
        from_document({"name": "wf", "nodes": [{"node_id": "x", "type": "constant", "data": {"config": "{bad"}}]})


def test_document_payload_excludes_id(graph):
    payload = document_payload(to_document(graph, name="wf", workflow_id=3))

    assert "id" not in payload
    assert payload["name"] == "wf"
    assert payload["nodes"][0]["position"] == {"x": 0.0, "y": 0.0}


def test_state_hash_ignores_execution_state(graph):
    before = state_hash(graph)
    node = graph.nodes[0]
    node.status = NodeStatus.SUCCESS
    node.last_output = True

    assert state_hash(graph) == before

    graph.rename_node(node.id, "changed")
    assert state_hash(graph) != before
