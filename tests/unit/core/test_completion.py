# tests/unit/core/test_completion.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from testloop.core.completion import Completion, CompletionState, LoopResult


def test_starts_not_complete():
    c = Completion()
    assert c.state is CompletionState.NOT_COMPLETE
    assert not c.is_complete


@pytest.mark.parametrize("target", [CompletionState.SUCCESS, CompletionState.ERROR, CompletionState.ABORTED])
def test_transitions_exactly_once(target):
    c = Completion()
    assert c.transition(target) is True
    assert c.state is target
    assert c.is_complete

    for other in (CompletionState.SUCCESS, CompletionState.ERROR, CompletionState.ABORTED):
        assert c.transition(other) is False
    assert c.state is target


def test_cannot_transition_to_not_complete():
    with pytest.raises(ValueError):
        Completion().transition(CompletionState.NOT_COMPLETE)


def test_state_string_names():
    assert str(CompletionState.NOT_COMPLETE) == "ASYNC_COMPLETE_NOT_COMPLETE"
    assert str(CompletionState.SUCCESS) == "ASYNC_COMPLETE_SUCCESS"
    assert str(CompletionState.ERROR) == "ASYNC_COMPLETE_ERROR"


def test_loop_result():
    ok = LoopResult(CompletionState.SUCCESS)
    assert ok.succeeded
    assert ok.error_msg == ""
    assert ok.error_tag is None

    failed = LoopResult(CompletionState.ERROR, "done('x'): Timeout", "x")
    assert not failed.succeeded
    with pytest.raises(AttributeError):
        failed.state = CompletionState.SUCCESS
