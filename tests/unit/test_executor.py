"""
실행 시뮬레이터 테스트

HTTP 호출은 conftest의 FakeBackend(MockTransport)로 대체합니다.
"""
import asyncio

import pytest

from workflow_editor.core.exceptions import WorkflowAlreadyRunningError, WorkflowValidationError
from workflow_editor.core.workflow.base_node import NodeStatus
from workflow_editor.core.workflow.graph import WorkflowGraph


def _graph(nodes, edges=None):
    return WorkflowGraph(nodes=nodes, edges=edges or [])


# ========== trigger ==========


@pytest.mark.asyncio
async def test_trigger_api_action_reports_loading_then_success(make_node, executor_factory, echo_body):
    graph = _graph([make_node("api", "apiAction", {"url": "/echo", "method": "GET"})])
    executor = executor_factory(graph)
    transitions = []
    executor.on_status_change("api", lambda node_id, status: transitions.append(status))

    result = await executor.trigger("api")

    assert transitions == [NodeStatus.LOADING, NodeStatus.SUCCESS]
    assert result.succeeded
    assert result.output == echo_body
    node = graph.get_node("api")
    assert node.status == NodeStatus.SUCCESS
    assert node.last_output == echo_body
    assert node.last_error is None


@pytest.mark.asyncio
async def test_trigger_sets_loading_before_work_completes(make_node, executor_factory):
    graph = _graph([make_node("c", "constant", {"value": 1})])
    executor = executor_factory(graph, delay_seconds=0.05)

    task = asyncio.create_task(executor.trigger("c"))
    await asyncio.sleep(0)
    assert graph.get_node("c").status == NodeStatus.LOADING

    await task
    assert graph.get_node("c").status == NodeStatus.SUCCESS


@pytest.mark.asyncio
async def test_api_action_response_mapping_and_post_body(make_node, executor_factory):
    graph = _graph([
        make_node("get", "apiAction", {
            "url": "/echo",
            "method": "get",
            "responseMapping": [
                {"alias": "firstId", "path": "items.0.id"},
                {"alias": "missing", "path": "nope"},
            ],
        }),
        make_node("post", "action", {"url": "/echo", "requestBody": '{"name": "kim"}'}),
    ])
    executor = executor_factory(graph)

    mapped = await executor.trigger("get")
    posted = await executor.trigger("post")

    assert mapped.output["_mapped"] == {"firstId": 1}
    assert posted.output == {"received": {"name": "kim"}}


@pytest.mark.asyncio
async def test_api_action_errors(make_node, executor_factory):
    graph = _graph([
        make_node("no_url", "apiAction"),
        make_node("fail", "apiAction", {"url": "/fail"}),
        make_node("down", "apiAction", {"url": "/down", "method": "GET"}),
        make_node("bad_method", "apiAction", {"url": "/echo", "method": "TRACEX"}),
    ])
    executor = executor_factory(graph)

    no_url = await executor.trigger("no_url")
    fail = await executor.trigger("fail")
    down = await executor.trigger("down")
    bad_method = await executor.trigger("bad_method")

    assert no_url.status == NodeStatus.ERROR
    assert graph.get_node("no_url").last_error == "API Action requires a URL"
    # 응답 본문이 있으면 본문이 오류 값
    assert fail.error == {"error": "boom"}
    assert graph.get_node("fail").status == NodeStatus.ERROR
    assert down.error.startswith("요청 실패")
    assert bad_method.status == NodeStatus.ERROR


@pytest.mark.asyncio
async def test_email_action(make_node, executor_factory, fake_backend):
    graph = _graph([
        make_node("mail", "emailAction", {
            "template": "welcome",
            "recipients": ["a@b.c"],
            "customData": {"name": "kim"},
        }),
        make_node("no_template", "emailAction", {"recipients": ["a@b.c"]}),
        make_node("no_recipients", "emailAction", {"template": "welcome"}),
    ])
    executor = executor_factory(graph)

    sent = await executor.trigger("mail")
    no_template = await executor.trigger("no_template")
    no_recipients = await executor.trigger("no_recipients")

    assert sent.output == {"success": True, "messageId": "msg-1"}
    assert ("POST", "/api/workflows/actions/email") in fake_backend.requests
    body = next(body for method, path, body in fake_backend.bodies if path == "/api/workflows/actions/email")
    assert body == {
        "template": "welcome",
        "recipients": ["a@b.c"],
        "subject": None,
        "customData": {"name": "kim"},
    }
    assert no_template.error == "Email Action requires a template"
    assert no_recipients.error == "Email Action requires at least one recipient"


@pytest.mark.asyncio
async def test_not_implemented_actions_fail_without_network(make_node, executor_factory, fake_backend):
    graph = _graph([
        make_node("db", "databaseAction"),
        make_node("script", "scriptAction"),
        make_node("hook", "webhookAction"),
    ])
    executor = executor_factory(graph, delay_seconds=5)

    results = [await executor.trigger(node_id) for node_id in ("db", "script", "hook")]

    assert [r.status for r in results] == [NodeStatus.ERROR] * 3
    assert results[0].error == "databaseAction is not implemented yet"
    assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_local_nodes(make_node, executor_factory):
    graph = _graph([
        make_node("start", "start"),
        make_node("start_value", "start", {"value": {"query": "hi"}}),
        make_node("hook", "webhookTrigger", {"testPayload": {"event": "push"}}),
        make_node("const", "constant", {"value": 42}),
        make_node("end", "end"),
        make_node("calendar", "googleCalendarAction", {"operation": "createEvent"}),
    ])
    executor = executor_factory(graph)

    assert (await executor.trigger("start")).output is True
    assert (await executor.trigger("start_value")).output == {"query": "hi"}
    assert (await executor.trigger("hook")).output == {"event": "push"}
    assert (await executor.trigger("const")).output == 42

    end = await executor.trigger("end")
    assert end.metadata["finished"] is True
    assert graph.get_node("end").status == NodeStatus.SUCCESS

    calendar = await executor.trigger("calendar")
    assert calendar.succeeded
    assert calendar.output is None


@pytest.mark.asyncio
async def test_merge_joins_inputs_in_port_order(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("c1", "constant", {"value": "hello"}),
            make_node("c2", "constant", {"value": "world"}),
            make_node("merge", "merge", {"separator": ", "}, inputs=["input-1", "input-2"]),
        ],
        [
            make_edge("c2", "merge", target_handle="input-2"),
            make_edge("c1", "merge", target_handle="input-1"),
        ],
    )
    executor = executor_factory(graph)

    result = await executor.trigger("merge")

    assert result.output == "hello, world"
    assert graph.get_node("merge").last_output == "hello, world"


@pytest.mark.asyncio
async def test_merge_skips_missing_inputs(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("c1", "constant", {"value": 3}),
            make_node("merge", "merge", {"separator": "-"}, inputs=["input-1", "input-2", "input-3"]),
        ],
        [make_edge("c1", "merge", target_handle="input-3")],
    )
    executor = executor_factory(graph)

    assert (await executor.trigger("merge")).output == "3"


@pytest.mark.asyncio
async def test_template_substitutes_inputs(make_node, make_edge, executor_factory):
    template = (
        'Hi ${input1} and <span data-type="mention" data-id="input2">input2</span> ${input3}'
    )
    graph = _graph(
        [
            make_node("a", "constant", {"value": "kim"}),
            make_node("b", "constant", {"value": 2.0}),
            make_node("tpl", "template", {"template": template}, inputs=["input-1", "input-2"]),
        ],
        [
            make_edge("a", "tpl", target_handle="input-1"),
            make_edge("b", "tpl", target_handle="input-2"),
        ],
    )
    executor = executor_factory(graph)

    result = await executor.trigger("tpl")

    assert result.output == "Hi kim and 2 ${input3}"


@pytest.mark.asyncio
async def test_condition_records_evaluation(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("count", "constant", {"value": 5}),
            make_node("check", "condition", {
                "operator": "greaterThan",
                "valueAMode": "dynamic",
                "valueBStatic": "3",
            }),
        ],
        [make_edge("count", "check")],
    )
    executor = executor_factory(graph)

    result = await executor.trigger("check")

    node = graph.get_node("check")
    assert result.succeeded
    assert result.output == 5
    assert node.condition_result is True
    assert node.last_evaluation["shouldContinue"] is True


@pytest.mark.asyncio
async def test_trigger_unknown_node_is_ignored(executor_factory):
    executor = executor_factory(WorkflowGraph())

    assert await executor.trigger("missing") is None


@pytest.mark.asyncio
async def test_result_dropped_when_node_deleted_while_running(make_node, executor_factory):
    graph = _graph([make_node("c", "constant", {"value": 1})])
    executor = executor_factory(graph, delay_seconds=0.05)

    task = asyncio.create_task(executor.trigger("c"))
    await asyncio.sleep(0)
    graph.delete_node("c")
    result = await task

    assert result.metadata["stale"] is True
    assert graph.get_node("c") is None


@pytest.mark.asyncio
async def test_concurrent_triggers_on_same_node(make_node, executor_factory):
    graph = _graph([make_node("c", "constant", {"value": "v"})])
    executor = executor_factory(graph, delay_seconds=0.02)
    transitions = []
    executor.on_status_change("c", lambda node_id, status: transitions.append(status))

    results = await executor.trigger_many(["c", "c"])

    assert all(result.succeeded for result in results)
    assert graph.get_node("c").status == NodeStatus.SUCCESS
    assert transitions[-1] == NodeStatus.SUCCESS


@pytest.mark.asyncio
async def test_status_callbacks_unsubscribe_and_errors(make_node, executor_factory):
    graph = _graph([make_node("c", "constant")])
    executor = executor_factory(graph)
    seen = []

    def broken(node_id, status):
        raise RuntimeError("callback failure")

    executor.on_status_change("c", broken)
    unsubscribe = executor.on_status_change("c", lambda node_id, status: seen.append(status))

    await executor.trigger("c")
    assert seen == [NodeStatus.LOADING, NodeStatus.SUCCESS]

    unsubscribe()
    await executor.trigger("c")
    assert len(seen) == 2


# ========== reset ==========


@pytest.mark.asyncio
async def test_reset_execution_clears_results(make_node, executor_factory):
    graph = _graph([
        make_node("ok", "constant", {"value": 1}),
        make_node("bad", "databaseAction"),
        make_node("idle", "end"),
    ])
    executor = executor_factory(graph)
    await executor.trigger("ok")
    await executor.trigger("bad")

    count = executor.reset_execution()

    assert count == 2
    for node in graph:
        assert node.status == NodeStatus.INITIAL
        assert node.last_output is None
        assert node.last_error is None


@pytest.mark.asyncio
async def test_reset_leaves_running_node_alone(make_node, executor_factory):
    graph = _graph([make_node("c", "constant", {"value": 1})])
    executor = executor_factory(graph, delay_seconds=0.05)

    task = asyncio.create_task(executor.trigger("c"))
    await asyncio.sleep(0)
    assert executor.reset_execution() == 0
    assert graph.get_node("c").status == NodeStatus.LOADING

    await task
    assert graph.get_node("c").status == NodeStatus.SUCCESS
    assert graph.get_node("c").last_output == 1


# ========== run_workflow ==========


@pytest.mark.asyncio
async def test_run_workflow_breadth_first(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("start", "start"),
            make_node("api", "apiAction", {"url": "/echo", "method": "GET"}),
            make_node("const", "constant", {"value": "x"}),
            make_node("end", "end"),
            make_node("orphan", "constant"),
        ],
        [
            make_edge("start", "api"),
            make_edge("start", "const"),
            make_edge("api", "end"),
            make_edge("const", "end"),
        ],
    )
    executor = executor_factory(graph)

    path = await executor.run_workflow()

    assert path == ["start", "api", "const", "end"]
    assert graph.get_node("end").status == NodeStatus.SUCCESS
    assert graph.get_node("orphan").status == NodeStatus.INITIAL


@pytest.mark.asyncio
async def test_run_workflow_stops_branch_on_condition_and_failure(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("start", "start"),
            make_node("check", "condition", {"operator": "equals", "valueAStatic": "a", "valueBStatic": "b"}),
            make_node("after_check", "end"),
            make_node("db", "databaseAction"),
            make_node("after_db", "end"),
        ],
        [
            make_edge("start", "check"),
            make_edge("check", "after_check"),
            make_edge("start", "db"),
            make_edge("db", "after_db"),
        ],
    )
    executor = executor_factory(graph)

    path = await executor.run_workflow()

    assert path == ["start", "check", "db"]
    assert graph.get_node("check").condition_result is False
    assert graph.get_node("db").status == NodeStatus.ERROR
    assert graph.get_node("after_check").status == NodeStatus.INITIAL


@pytest.mark.asyncio
async def test_run_workflow_requires_start(make_node, executor_factory):
    executor = executor_factory(_graph([make_node("end", "end")]))

    with pytest.raises(WorkflowValidationError):
        await executor.run_workflow()


@pytest.mark.asyncio
async def test_run_workflow_executes_unreached_producers_first(make_node, make_edge, executor_factory, echo_body):
    graph = _graph(
        [
            make_node("start", "start"),
            make_node("api", "apiAction", {"url": "/echo", "method": "GET"}),
            make_node("merge", "merge"),
        ],
        [
            make_edge("start", "merge", target_handle="input-1"),
            make_edge("api", "merge", target_handle="input-2"),
        ],
    )
    executor = executor_factory(graph)

    path = await executor.run_workflow()

    assert path == ["start", "api", "merge"]
    assert graph.get_node("api").status == NodeStatus.SUCCESS
    assert graph.get_node("api").last_output == echo_body
    assert graph.get_node("merge").status == NodeStatus.SUCCESS


@pytest.mark.asyncio
async def test_run_workflow_stops_when_producer_fails(make_node, make_edge, executor_factory):
    graph = _graph(
        [
            make_node("start", "start"),
            make_node("db", "databaseAction"),
            make_node("merge", "merge"),
            make_node("other", "merge"),
        ],
        [
            make_edge("start", "merge", target_handle="input-1"),
            make_edge("db", "merge", target_handle="input-2"),
            make_edge("start", "other", target_handle="input-1"),
            make_edge("db", "other", target_handle="input-2"),
        ],
    )
    executor = executor_factory(graph)

    path = await executor.run_workflow()

    assert path == ["start", "db"]
    assert graph.get_node("db").status == NodeStatus.ERROR
    assert graph.get_node("merge").status == NodeStatus.INITIAL
    assert graph.get_node("other").status == NodeStatus.INITIAL


@pytest.mark.asyncio
async def test_run_workflow_clears_previous_results(make_node, make_edge, executor_factory):
    graph = _graph(
        [make_node("start", "start"), make_node("end", "end"), make_node("orphan", "constant", {"value": 1})],
        [make_edge("start", "end")],
    )
    executor = executor_factory(graph)
    await executor.trigger("orphan")

    await executor.run_workflow()

    orphan = graph.get_node("orphan")
    assert orphan.status == NodeStatus.INITIAL
    assert orphan.last_output is None
    assert graph.get_node("end").status == NodeStatus.SUCCESS


@pytest.mark.asyncio
async def test_overlapping_runs_rejected(make_node, make_edge, executor_factory, fake_backend):
    fake_backend.write_delay = 0.1
    graph = _graph(
        [make_node("start", "start"), make_node("api", "apiAction", {"url": "/echo", "method": "POST"})],
        [make_edge("start", "api")],
    )
    executor = executor_factory(graph)

    first = asyncio.create_task(executor.run_workflow())
    await asyncio.sleep(0.03)

    assert executor.is_running
    with pytest.raises(WorkflowAlreadyRunningError):
        await executor.run_workflow()

    assert await first == ["start", "api"]
    assert not executor.is_running


@pytest.mark.asyncio
async def test_constant_computes_datetime_and_plaintext(make_node, executor_factory):
    graph = _graph([
        make_node("when", "constant", {"valueType": "datetime", "datetimeOption": "fixed", "fixedDateTime": "2024-12-25T09:00:00Z"}),
        make_node("body", "constant", {"valueType": "richtext", "outputFormat": "plaintext", "value": "<p>안녕 <em>세계</em></p>"}),
    ])
    executor = executor_factory(graph)

    assert (await executor.trigger("when")).output == "2024-12-25T09:00:00+00:00"
    assert (await executor.trigger("body")).output == "안녕 세계"
