"""Tests for message dispatch: ``make_promise``, ``send`` and the canonical operators."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from eventual import (
    PENDING,
    Fulfilled,
    Operator,
    Rejected,
    UnsupportedOperatorError,
    defer,
    delete,
    fcall,
    get,
    invoke,
    is_resolved,
    make_promise,
    post,
    put,
    ref,
    reject,
    send,
    when,
)


class TestMakePromise:
    def test_custom_operator(self, settle) -> None:
        promise = make_promise({"double": lambda x: x * 2})
        assert settle(send(promise, "double", 21)) == Fulfilled(42)

    def test_unknown_operator_rejects(self, settle) -> None:
        promise = make_promise({"double": lambda x: x * 2})
        outcome = settle(send(promise, "triple", 1))
        assert outcome.is_rejected()
        assert isinstance(outcome.reason, UnsupportedOperatorError)
        assert outcome.reason.operator == "triple"

    def test_custom_fallback_receives_operator_and_args(self, settle) -> None:
        promise = make_promise({}, fallback=lambda operator, *args: (operator, args))
        assert settle(send(promise, "anything", 1, 2)) == Fulfilled(("anything", (1, 2)))

    def test_handler_fault_becomes_rejection(self, settle) -> None:
        failure = ZeroDivisionError("division by zero")

        def divide(_: int) -> None:
            raise failure

        promise = make_promise({"divide": divide})
        assert settle(send(promise, "divide", 0)) == Rejected(failure)

    def test_handler_may_answer_with_promise(self, settle) -> None:
        promise = make_promise({"lookup": lambda key: ref({"a": 1}[key])})
        assert settle(send(promise, "lookup", "a")) == Fulfilled(1)

    def test_default_inspect_reports_pending(self) -> None:
        promise = make_promise({})
        assert promise.inspect() is PENDING
        assert not is_resolved(promise)

    def test_inspect_override(self) -> None:
        promise = make_promise({}, inspect=lambda: Fulfilled("peeked"))
        assert promise.inspect() == Fulfilled("peeked")
        assert is_resolved(promise)

    def test_inspect_must_return_outcome(self) -> None:
        promise = make_promise({}, inspect=lambda: "not an outcome")
        with pytest.raises(TypeError):
            promise.inspect()

    def test_observing_without_when_handler_rejects(self, settle) -> None:
        outcome = settle(when(make_promise({})))
        assert outcome.is_rejected()
        assert outcome.reason.operator == "when"

    def test_when_handler_answers_observation(self, settle) -> None:
        promise = make_promise({Operator.WHEN: lambda on_rejected=None: 7})
        assert settle(when(promise, lambda value: value + 1)) == Fulfilled(8)

    def test_when_handler_answering_with_promise_is_followed(self, settle) -> None:
        promise = make_promise({"when": lambda on_rejected=None: ref(5)})
        assert settle(when(promise, lambda value: value * 2)) == Fulfilled(10)

    def test_when_handler_reporting_rejection(self, settle) -> None:
        def _when(on_rejected=None):
            return on_rejected("remote failure")

        promise = make_promise({Operator.WHEN: _when})
        assert settle(when(promise, None, lambda reason: "saw " + reason)) == Fulfilled(
            "saw remote failure"
        )

    @pytest.mark.parametrize("descriptor", [[], "when", None])
    def test_descriptor_must_be_mapping(self, descriptor) -> None:
        with pytest.raises(TypeError):
            make_promise(descriptor)

    def test_handlers_must_be_callable(self) -> None:
        with pytest.raises(TypeError):
            make_promise({"get": 1})


class TestSend:
    def test_delivery_waits_for_a_later_turn(self, scheduler) -> None:
        calls: list[str] = []
        promise = make_promise({"ping": lambda: calls.append("ping")})
        send(promise, "ping")
        assert calls == []
        scheduler.run_until_idle()
        assert calls == ["ping"]

    def test_messages_to_pending_promise_are_queued(self, settle) -> None:
        deferred = defer()
        answer = send(deferred.promise, "get", "a")
        assert settle(answer) is PENDING
        deferred.resolve({"a": "queued"})
        assert settle(answer) == Fulfilled("queued")

    def test_promise_send_method(self, settle) -> None:
        promise = make_promise({"echo": lambda value: value})
        assert settle(promise.send("echo", "hi")) == Fulfilled("hi")

    def test_operator_must_be_string(self) -> None:
        with pytest.raises(TypeError):
            send(ref(1), 3)

    def test_rejected_promise_answers_every_operator_with_rejection(self, settle) -> None:
        assert settle(get(reject("gone"), "a")) == Rejected("gone")
        assert settle(send(reject("gone"), "custom", 1)) == Rejected("gone")


class TestCanonicalOperators:
    def test_get_key(self, settle) -> None:
        assert settle(get({"a": 1}, "a")) == Fulfilled(1)

    def test_get_attribute(self, settle) -> None:
        assert settle(get(SimpleNamespace(name="node"), "name")) == Fulfilled("node")

    def test_get_missing_key_rejects(self, settle) -> None:
        outcome = settle(get({}, "missing"))
        assert outcome.is_rejected()
        assert isinstance(outcome.reason, KeyError)

    def test_put_key_and_attribute(self, settle) -> None:
        mapping: dict[str, int] = {}
        target = SimpleNamespace()
        assert settle(put(mapping, "a", 1)) == Fulfilled(None)
        settle(put(target, "b", 2))
        assert mapping == {"a": 1}
        assert target.b == 2

    def test_delete_key_and_attribute(self, settle) -> None:
        mapping = {"a": 1, "b": 2}
        target = SimpleNamespace(c=3)
        settle(delete(mapping, "a"))
        settle(delete(target, "c"))
        assert mapping == {"b": 2}
        assert not hasattr(target, "c")

    def test_post_calls_method(self, settle) -> None:
        assert settle(post("abc", "upper")) == Fulfilled("ABC")
        assert settle(post("a-b", "split", ["-"])) == Fulfilled(["a", "b"])

    def test_post_without_name_calls_value(self, settle) -> None:
        assert settle(post(lambda x: x + 1, None, [1])) == Fulfilled(2)

    def test_invoke(self, settle) -> None:
        assert settle(invoke("a,b", "split", ",")) == Fulfilled(["a", "b"])

    def test_fcall(self, settle) -> None:
        assert settle(fcall(lambda x, y: x + y, 1, 2)) == Fulfilled(3)

    def test_operators_on_eventual_value(self, settle) -> None:
        deferred = defer()
        length = invoke(deferred.promise, "__len__")
        deferred.resolve([1, 2, 3])
        assert settle(length) == Fulfilled(3)

    def test_invoke_calls_mapping_methods(self, settle) -> None:
        assert settle(invoke({"a": 1}, "get", "a")) == Fulfilled(1)
        assert settle(invoke({"a": 1}, "get", "missing", 0)) == Fulfilled(0)
        assert settle(post({"a": 1}, "copy")) == Fulfilled({"a": 1})

    def test_get_on_mapping_still_reads_keys(self, settle) -> None:
        assert settle(get({"copy": "key value"}, "copy")) == Fulfilled("key value")


class TestWhenProtocol:
    def test_raw_when_message_answers_with_value(self, settle) -> None:
        assert settle(send(ref(1), "when")) == Fulfilled(1)

    def test_raw_when_message_reports_rejection_through_callback(self, settle) -> None:
        reasons: list[str] = []

        def on_rejected(reason: str) -> str:
            reasons.append(reason)
            return "handled " + reason

        assert settle(send(reject("x"), Operator.WHEN, on_rejected)) == Fulfilled("handled x")
        assert reasons == ["x"]
