"""
에디터 API 통합 테스트 (백엔드 대역 사용)
"""
import pytest

API = "/api/v1/editor"


async def _create_session(client, name="테스트 워크플로우"):
    response = await client.post(f"{API}/sessions", json={"name": name})
    assert response.status_code == 201
    return response.json()["session_id"]


async def _add_node(client, session_id, kind, x=0, y=0):
    response = await client.post(
        f"{API}/sessions/{session_id}/nodes",
        json={"kind": kind, "position": {"x": x, "y": y}},
    )
    assert response.status_code == 201
    return response.json()


async def _set_config(client, session_id, node_id, config):
    response = await client.put(
        f"{API}/sessions/{session_id}/nodes/{node_id}/config",
        json={"config": config},
    )
    assert response.status_code == 200
    return response.json()


async def _connect(client, session_id, source, target, target_handle=None):
    payload = {"source": source, "target": target}
    if target_handle:
        payload["targetHandle"] = target_handle
    response = await client.post(f"{API}/sessions/{session_id}/edges", json=payload)
    assert response.status_code == 200
    return response.json()


# ========== 세션 / 편집 ==========


@pytest.mark.asyncio
async def test_create_session_and_build_graph(async_client):
    session_id = await _create_session(async_client)
    start = await _add_node(async_client, session_id, "start")
    api = await _add_node(async_client, session_id, "apiAction", y=150)

    assert start["label"] == "Initial Node"
    assert start["status"] == "initial"
    assert api["config"]["url"] is None

    updated = await _set_config(async_client, session_id, api["id"], {"url": "/echo", "method": "GET"})
    assert updated["config"]["url"] == "/echo"
    assert updated["config"]["method"] == "GET"

    connected = await _connect(async_client, session_id, start["id"], api["id"])
    assert connected["accepted"] is True
    assert connected["action"] == "added"
    assert connected["edge"]["id"] == f"edge-{start['id']}__{api['id']}"

    response = await async_client.get(f"{API}/sessions/{session_id}")
    body = response.json()
    assert [node["id"] for node in body["nodes"]] == [start["id"], api["id"]]
    assert len(body["edges"]) == 1
    assert body["can_undo"] is True
    assert body["theme"] == "light"


@pytest.mark.asyncio
async def test_undo_and_redo(async_client):
    session_id = await _create_session(async_client)
    await _add_node(async_client, session_id, "start")
    await _add_node(async_client, session_id, "end")

    undone = (await async_client.post(f"{API}/sessions/{session_id}/undo")).json()
    assert len(undone["nodes"]) == 1
    assert undone["can_redo"] is True

    redone = (await async_client.post(f"{API}/sessions/{session_id}/redo")).json()
    assert len(redone["nodes"]) == 2
    assert redone["can_redo"] is False


@pytest.mark.asyncio
async def test_delete_key_removes_selected_edge(async_client):
    session_id = await _create_session(async_client)
    start = await _add_node(async_client, session_id, "start")
    end = await _add_node(async_client, session_id, "end")
    edge = (await _connect(async_client, session_id, start["id"], end["id"]))["edge"]

    selected = await async_client.put(f"{API}/sessions/{session_id}/selection", json={"edge_id": edge["id"]})
    assert selected.json()["selected_edge_id"] == edge["id"]

    response = await async_client.post(f"{API}/sessions/{session_id}/keys", json={"key": "Delete"})

    body = response.json()
    assert body["handled"] == 1
    assert body["session"]["edges"] == []
    assert body["session"]["selected_edge_id"] is None


@pytest.mark.asyncio
async def test_occupied_port_connection_returns_warning(async_client):
    session_id = await _create_session(async_client)
    first = await _add_node(async_client, session_id, "constant")
    second = await _add_node(async_client, session_id, "constant")
    merge = await _add_node(async_client, session_id, "merge")

    await _connect(async_client, session_id, first["id"], merge["id"], "input-1")
    rejected = await _connect(async_client, session_id, second["id"], merge["id"], "input-1")

    assert rejected["accepted"] is False
    assert rejected["action"] == "occupied"
    assert rejected["warning"]
    assert rejected["edge"] is None


@pytest.mark.asyncio
async def test_port_minimum_violation(async_client):
    session_id = await _create_session(async_client)
    merge = await _add_node(async_client, session_id, "merge")

    response = await async_client.delete(f"{API}/sessions/{session_id}/nodes/{merge['id']}/ports/0")

    assert response.status_code == 400
    assert response.json()["error_code"] == "PORT_CONSTRAINT"

    added = await async_client.post(f"{API}/sessions/{session_id}/nodes/{merge['id']}/ports")
    assert added.json()["inputs"] == ["input-1", "input-2", "input-3"]


@pytest.mark.asyncio
async def test_auto_layout(async_client):
    session_id = await _create_session(async_client)
    start = await _add_node(async_client, session_id, "start", x=400, y=400)
    end = await _add_node(async_client, session_id, "end", x=400, y=400)
    await _connect(async_client, session_id, start["id"], end["id"])

    response = await async_client.post(f"{API}/sessions/{session_id}/layout", json={"direction": "DOWN"})

    positions = [node["position"] for node in response.json()["nodes"]]
    assert positions[0] == {"x": 0, "y": 0}
    assert positions[1]["y"] > 0

    invalid = await async_client.post(f"{API}/sessions/{session_id}/layout", json={"direction": "UP"})
    assert invalid.status_code == 400


# ========== 실행 / 바인딩 ==========


@pytest.mark.asyncio
async def test_trigger_api_node_and_list_bindings(async_client, echo_body):
    session_id = await _create_session(async_client)
    api = await _add_node(async_client, session_id, "apiAction")
    email = await _add_node(async_client, session_id, "emailAction", y=150)
    await _set_config(async_client, session_id, api["id"], {"url": "/echo", "method": "GET"})
    await _connect(async_client, session_id, api["id"], email["id"])

    response = await async_client.post(f"{API}/sessions/{session_id}/nodes/{api['id']}/trigger")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "success"
    assert body["output"] == echo_body
    assert body["node"]["lastOutput"] == echo_body

    bindings = await async_client.get(f"{API}/sessions/{session_id}/nodes/{email['id']}/bindings")
    result = bindings.json()
    assert [item["node_id"] for item in result["available_inputs"]] == [api["id"]]
    paths = [entry["path"] for entry in result["resolution"]["selectable_paths"]]
    assert "message" in paths
    assert "items.0.name" in paths
    assert result["resolution"]["placeholder"] == "{{{input}}}"

    bound = await async_client.put(
        f"{API}/sessions/{session_id}/nodes/{email['id']}/bindings/subject",
        json={"isDynamic": True, "path": "message"},
    )
    assert bound.json()["node"]["config"]["subject"] == "{{{input.message}}}"


@pytest.mark.asyncio
async def test_trigger_failure_is_reported_in_body(async_client):
    session_id = await _create_session(async_client)
    api = await _add_node(async_client, session_id, "apiAction")
    await _set_config(async_client, session_id, api["id"], {"url": "/fail", "method": "GET"})

    response = await async_client.post(f"{API}/sessions/{session_id}/nodes/{api['id']}/trigger")

    assert response.status_code == 200
    assert response.json()["status"] == "error"
    assert response.json()["error"] == {"error": "boom"}


@pytest.mark.asyncio
async def test_merge_constants(async_client):
    session_id = await _create_session(async_client)
    first = await _add_node(async_client, session_id, "constant")
    second = await _add_node(async_client, session_id, "constant")
    merge = await _add_node(async_client, session_id, "merge")
    await _set_config(async_client, session_id, first["id"], {"value": "hello"})
    await _set_config(async_client, session_id, second["id"], {"value": "world"})
    await _set_config(async_client, session_id, merge["id"], {"separator": ", "})
    await _connect(async_client, session_id, first["id"], merge["id"], "input-1")
    await _connect(async_client, session_id, second["id"], merge["id"], "input-2")

    for node in (first, second):
        await async_client.post(f"{API}/sessions/{session_id}/nodes/{node['id']}/trigger")
    response = await async_client.post(f"{API}/sessions/{session_id}/nodes/{merge['id']}/trigger")

    assert response.json()["output"] == "hello, world"


@pytest.mark.asyncio
async def test_run_and_reset(async_client):
    session_id = await _create_session(async_client)
    start = await _add_node(async_client, session_id, "start")
    end = await _add_node(async_client, session_id, "end")
    await _connect(async_client, session_id, start["id"], end["id"])

    response = await async_client.post(f"{API}/sessions/{session_id}/run")

    body = response.json()
    assert body["execution_path"] == [start["id"], end["id"]]
    assert {node["status"] for node in body["nodes"]} == {"success"}

    reset = await async_client.post(f"{API}/sessions/{session_id}/reset")
    assert reset.json()["reset_count"] == 2


@pytest.mark.asyncio
async def test_extract_paths_endpoint(async_client):
    response = await async_client.post(
        f"{API}/paths",
        json={"value": {"user": {"name": "kim"}, "tags": ["a"]}},
    )

    paths = [entry["path"] for entry in response.json()["paths"]]
    assert paths == ["user", "user.name", "tags", "tags.0"]


# ========== 오류 응답 ==========


@pytest.mark.asyncio
async def test_unknown_session_returns_404(async_client):
    response = await async_client.get(f"{API}/sessions/missing")

    assert response.status_code == 404
    assert response.json()["error_code"] == "SESSION_NOT_FOUND"


@pytest.mark.asyncio
async def test_invalid_config_text(async_client):
    session_id = await _create_session(async_client)
    node = await _add_node(async_client, session_id, "constant")

    response = await async_client.put(
        f"{API}/sessions/{session_id}/nodes/{node['id']}/config",
        json={"config_text": "{not json"},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_NODE_CONFIG"


@pytest.mark.asyncio
async def test_run_without_start_node(async_client):
    session_id = await _create_session(async_client)
    await _add_node(async_client, session_id, "constant")

    response = await async_client.post(f"{API}/sessions/{session_id}/run")

    assert response.status_code == 400
    assert response.json()["error_code"] == "WORKFLOW_VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_missing_config_body_is_rejected(async_client):
    session_id = await _create_session(async_client)
    node = await _add_node(async_client, session_id, "constant")

    response = await async_client.put(f"{API}/sessions/{session_id}/nodes/{node['id']}/config", json={})

    assert response.status_code == 422


# ========== 저장 / 불러오기 ==========


@pytest.mark.asyncio
async def test_save_and_reload(async_client, fake_backend):
    session_id = await _create_session(async_client, name="주문 알림")
    await _add_node(async_client, session_id, "start")

    saved = (await async_client.post(f"{API}/sessions/{session_id}/save")).json()
    assert saved["saved"] is True
    assert saved["workflow_id"] == 101

    again = (await async_client.post(f"{API}/sessions/{session_id}/save")).json()
    assert again["saved"] is False

    loaded = await async_client.post(f"{API}/sessions/load", json={"workflow_id": 101})

    body = loaded.json()
    assert loaded.status_code == 201
    assert body["name"] == "주문 알림"
    assert body["workflow_id"] == 101
    assert [node["kind"] for node in body["nodes"]] == ["start"]
    assert body["has_unsaved_changes"] is False


@pytest.mark.asyncio
async def test_load_missing_workflow(async_client):
    response = await async_client.post(f"{API}/sessions/load", json={"workflow_id": 999})

    assert response.status_code == 502
    assert response.json()["error_code"] == "PERSISTENCE_ERROR"


@pytest.mark.asyncio
async def test_close_session(async_client):
    session_id = await _create_session(async_client)

    response = await async_client.delete(f"{API}/sessions/{session_id}")

    assert response.status_code == 204
    assert (await async_client.get(f"{API}/sessions/{session_id}")).status_code == 404


# ========== 헬스 체크 ==========


@pytest.mark.asyncio
async def test_health_endpoints(async_client):
    root = await async_client.get("/health")
    versioned = await async_client.get("/api/v1/health")

    assert root.json()["status"] == "healthy"
    assert versioned.json()["api_version"] == "v1"
