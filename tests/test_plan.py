import pytest

from hostprep import Sequencer, SequencerContainer
from hostprep.sequencer import BUILDING_PLAN, build_plan
from tests.assertions import (
    assert_log_message_field_equals,
    assert_logged_action_failed,
    assert_logged_action_succeeded,
    logged_actions,
)
from tests.mocks import FakeHost, create_mock_step


def test_build_plan_keeps_declared_order(logger):
    step1 = create_mock_step("step1")
    step2 = create_mock_step("step2", requires=["step1"])
    step3 = create_mock_step("step3")
    step4 = create_mock_step("step4", requires=["step1", "step2"])

    plan = build_plan("Test", [step1, step2, step3, step4])

    assert plan == [step1, step2, step3, step4]

    (logged_action,) = logged_actions(logger, BUILDING_PLAN)
    assert_log_message_field_equals(logged_action.start_message, "name", "Test")
    assert_log_message_field_equals(logged_action.end_message, "name", "Test")
    assert_log_message_field_equals(logged_action.end_message, "steps", plan)
    assert_logged_action_succeeded(logged_action)


def test_build_plan_with_duplicate_names(logger):
    steps = [create_mock_step("step1"), create_mock_step("step1")]

    with pytest.raises(ValueError, match="Duplicate step name: 'step1'."):
        build_plan("Test", steps)

    (logged_action,) = logged_actions(logger, BUILDING_PLAN)
    assert_logged_action_failed(logged_action)
    assert_log_message_field_equals(
        logged_action.end_message, "exception", "builtins.ValueError"
    )


def test_build_plan_with_unknown_requirement():
    steps = [create_mock_step("step1", requires=["missing"])]

    with pytest.raises(ValueError, match="'step1' requires an unknown step 'missing'."):
        build_plan("Test", steps)


def test_build_plan_with_requirement_declared_later():
    steps = [
        create_mock_step("engine", requires=["repository"]),
        create_mock_step("repository"),
    ]

    with pytest.raises(
        ValueError, match="'engine' is declared before 'repository', which it requires."
    ):
        build_plan("Test", steps)


def test_build_plan_with_circular_dependencies():
    steps = [
        create_mock_step("step1", requires=["step2"]),
        create_mock_step("step2", requires=["step1"]),
    ]

    with pytest.raises(ValueError, match="Circular dependencies found"):
        build_plan("Test", steps)


def test_sequencer_container_builds_a_validated_sequencer():
    step1 = create_mock_step("step1")
    step2 = create_mock_step("step2", requires=["step1"])
    mock_bootsteps = [step1, step2]
    test_host = FakeHost()

    class MyContainer(SequencerContainer):
        name = "Test"
        bootsteps = mock_bootsteps
        host = test_host

    sequencer = MyContainer.sequencer

    assert isinstance(sequencer, Sequencer)
    assert sequencer.name == "Test"
    assert sequencer.steps == mock_bootsteps
    assert sequencer.host is test_host


def test_sequencer_container_rejects_an_invalid_plan():
    mock_bootsteps = [create_mock_step("step1", requires=["step2"])]

    class MyContainer(SequencerContainer):
        bootsteps = mock_bootsteps
        host = FakeHost()

    with pytest.raises(ValueError):
        MyContainer.sequencer
