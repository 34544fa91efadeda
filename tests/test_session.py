"""Tests for the reactor state machine and the response emitter.

Everything here is synchronous: the reactor never awaits, so memory
streams can be driven with ``send_nowait`` / ``receive_nowait``.
"""

import json
import math

import anyio
import pytest
from lineserver.dispatcher import Dispatcher, MethodRegistry
from lineserver.messages import Error, Invoke, Result
from lineserver.session import Reactor, SessionState


class Harness:
    def __init__(self, handlers=None, **options):
        self.invoke_send, self.invoke_recv = anyio.create_memory_object_stream[Invoke](math.inf)
        self.reactor = Reactor(
            MethodRegistry(handlers if handlers is not None else {"echo": "echo", "sum": "sum"}),
            Dispatcher(self.invoke_send),
            **options,
        )
        self._streams = [self.invoke_send, self.invoke_recv]

    def connect(self):
        send, recv = anyio.create_memory_object_stream[str](math.inf)
        self._streams += [send, recv]
        session = self.reactor.open(send)
        return session, recv

    def next_invoke(self):
        return self.invoke_recv.receive_nowait()

    def close(self):
        for stream in self._streams:
            stream.close()


def responses(recv):
    out = []
    while True:
        try:
            out.append(json.loads(recv.receive_nowait()))
        except anyio.WouldBlock:
            return out


@pytest.fixture
def harness():
    h = Harness()
    yield h
    h.close()


# ── Inbound lines ────────────────────────────────────────────────────


def test_invalid_json(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, "{not json")
    assert responses(out) == [{"id": None, "error": "invalid json request", "result": None}]
    assert session.state is SessionState.IDLE


def test_non_object_is_invalid_json(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, "[1, 2]")
    assert responses(out)[0]["error"] == "invalid json request"


def test_missing_method(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"params": [1], "id": 3}')
    assert responses(out) == [
        {"id": None, "error": 'parameter "method" is required', "result": None}
    ]


def test_unknown_method(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "frob", "id": 3}')
    assert responses(out) == [{"id": None, "error": 'no such method "frob"', "result": None}]
    with pytest.raises(anyio.WouldBlock):
        harness.next_invoke()


def test_unknown_method_reported_before_bad_params(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "nope", "params": 5, "id": 1}')
    assert responses(out) == [{"id": None, "error": 'no such method "nope"', "result": None}]


def test_bad_params_for_known_method(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "params": {"a": 1}, "id": 1}')
    assert responses(out) == [
        {"id": None, "error": 'parameter "params" must be an array', "result": None}
    ]
    assert session.state is SessionState.IDLE
    with pytest.raises(anyio.WouldBlock):
        harness.next_invoke()


@pytest.mark.parametrize("method", ["", "0", 0, 0.0, False, None])
def test_false_method_is_required(harness, method):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, json.dumps({"method": method, "id": 1}))
    assert responses(out)[0]["error"] == 'parameter "method" is required'


def test_true_method_is_looked_up_as_one():
    h = Harness({"1": "echo"})
    session, out = h.connect()
    h.reactor.on_line(session.id, '{"method": true, "id": 1}')
    assert h.next_invoke() == Invoke(session.id, "echo", [])
    h.reactor.on_line(session.id, '{"method": 2.5, "id": 1}')
    assert responses(out) == [{"id": 1, "error": 'no such method "2.5"', "result": None}]
    h.close()


def test_dispatch(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "params": ["foo", "bar"], "id": 1}')

    invoke = harness.next_invoke()
    assert invoke == Invoke(session.id, "echo", ["foo", "bar"])
    assert session.pending_id == 1
    assert session.state is SessionState.AWAITING_HANDLER
    assert responses(out) == []


def test_dispatch_defaults(harness):
    session, _ = harness.connect()
    harness.reactor.on_line(session.id, b'{"method": "echo"}\r')
    invoke = harness.next_invoke()
    assert list(invoke.params) == []
    assert session.pending_id is None


def test_line_for_closed_connection_is_ignored(harness):
    session, out = harness.connect()
    harness.reactor.close(session.id)
    harness.reactor.on_line(session.id, '{"method": "echo"}')
    assert responses(out) == []
    assert len(harness.reactor) == 0


# ── Completions ──────────────────────────────────────────────────────


def test_result_echoes_request_id(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "params": ["foo", "bar"], "id": 1}')
    harness.reactor.complete(Result(session.id, ("foo", "bar")))
    assert responses(out) == [{"id": 1, "error": None, "result": ["foo", "bar"]}]
    assert session.state is SessionState.IDLE


def test_single_value_collapses_to_scalar(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "sum", "params": [2, 3], "id": "s"}')
    harness.reactor.on_result(session.id, (5,))
    assert responses(out) == [{"id": "s", "error": None, "result": 5}]


def test_single_list_value_is_not_flattened(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 1}')
    harness.reactor.on_result(session.id, ([1, 2],))
    assert responses(out)[0]["result"] == [1, 2]


def test_zero_values_give_empty_list(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 1}')
    harness.reactor.on_result(session.id, ())
    assert responses(out) == [{"id": 1, "error": None, "result": []}]


def test_unencodable_result_becomes_error(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 1}')
    harness.reactor.on_result(session.id, ({1, 2},))
    (sent,) = responses(out)
    assert sent["id"] == 1
    assert sent["result"] is None
    assert sent["error"].startswith("internal error:")


def test_deeply_nested_line_is_invalid_json(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, "[" * 100000 + "]" * 100000)
    assert responses(out)[0]["error"] == "invalid json request"


def test_handler_error(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": [1]}')
    harness.reactor.complete(Error(session.id, "went wrong"))
    assert responses(out) == [{"id": [1], "error": "went wrong", "result": None}]
    assert session.state is SessionState.IDLE


def test_result_may_be_reported_repeatedly(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 9}')
    harness.reactor.on_result(session.id, ("a",))
    harness.reactor.on_result(session.id, ("b",))
    sent = responses(out)
    assert [r["result"] for r in sent] == ["a", "b"]
    assert [r["id"] for r in sent] == [9, 9]


@pytest.mark.parametrize("req_id", [None, 0, "", 1, -2.5, "abc", {"k": "v"}, [1, "2"], False])
def test_id_is_echoed_exactly(harness, req_id):
    session, out = harness.connect()
    line = json.dumps({"method": "echo", "params": [], "id": req_id})
    harness.reactor.on_line(session.id, line)
    harness.reactor.on_result(session.id, ("ok",))
    assert responses(out)[0]["id"] == req_id


@pytest.mark.parametrize("req_id", [0, "", "0", False, 0.0])
def test_legacy_falsy_ids_become_null(req_id):
    h = Harness(legacy_falsy_ids=True)
    session, out = h.connect()
    h.reactor.on_line(session.id, json.dumps({"method": "echo", "id": req_id}))
    h.reactor.on_result(session.id, ("ok",))
    assert responses(out)[0]["id"] is None
    h.close()


def test_legacy_truthy_ids_kept():
    h = Harness(legacy_falsy_ids=True)
    session, out = h.connect()
    h.reactor.on_line(session.id, json.dumps({"method": "echo", "id": 7}))
    h.reactor.on_result(session.id, ("ok",))
    assert responses(out)[0]["id"] == 7
    h.close()


# ── Pending id semantics ─────────────────────────────────────────────


def test_second_request_overwrites_pending_id(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "params": ["first"], "id": 1}')
    harness.reactor.on_line(session.id, '{"method": "echo", "params": ["second"], "id": 2}')

    # The first handler finishes after the second request arrived.
    harness.reactor.on_result(session.id, ("first",))
    assert responses(out) == [{"id": 2, "error": None, "result": "first"}]


def test_protocol_error_uses_stored_pending_id(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 5}')
    harness.reactor.on_result(session.id, ("done",))
    harness.reactor.on_line(session.id, "garbage")
    assert responses(out)[-1] == {"id": 5, "error": "invalid json request", "result": None}


def test_protocol_error_leaves_state_alone(harness):
    session, _ = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 5}')
    harness.reactor.on_line(session.id, '{"method": "nope"}')
    assert session.state is SessionState.AWAITING_HANDLER
    assert session.pending_id == 5


# ── Connection independence ─────────────────────────────────────────


def test_connections_are_independent(harness):
    a, out_a = harness.connect()
    b, out_b = harness.connect()
    harness.reactor.on_line(b.id, '{"method": "echo", "id": "b-1"}')
    harness.reactor.on_line(a.id, "not json")

    assert b.pending_id == "b-1"
    assert responses(out_b) == []
    harness.reactor.on_result(b.id, ("x",))
    assert responses(out_b) == [{"id": "b-1", "error": None, "result": "x"}]
    assert responses(out_a) == [{"id": None, "error": "invalid json request", "result": None}]


def test_same_request_on_two_connections_gives_same_envelope(harness):
    a, out_a = harness.connect()
    b, out_b = harness.connect()
    line = '{"method": "sum", "params": [2, 3], "id": 42}'
    for session in (a, b):
        harness.reactor.on_line(session.id, line)
        harness.reactor.on_result(session.id, (5,))
    assert responses(out_a) == responses(out_b) == [{"id": 42, "error": None, "result": 5}]


def test_connection_ids_are_distinct(harness):
    a, _ = harness.connect()
    b, _ = harness.connect()
    assert a.id != b.id
    assert harness.reactor.get(a.id) is a


# ── Closed sinks ─────────────────────────────────────────────────────


def test_result_after_close_is_dropped(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 1}')
    harness.reactor.close(session.id)
    harness.reactor.on_result(session.id, ("late",))
    harness.reactor.on_error(session.id, "late")
    assert responses(out) == []


def test_write_to_closed_sink_is_dropped(harness):
    session, out = harness.connect()
    harness.reactor.on_line(session.id, '{"method": "echo", "id": 1}')
    out.close()
    harness.reactor.on_result(session.id, ("x",))
    assert session.state is SessionState.IDLE


def test_unexpected_completion_type(harness):
    with pytest.raises(TypeError):
        harness.reactor.complete(object())
