"""
The sequencer runs an ordered plan of Steps against the host, one at a time.

Steps may declare which other steps they require. Declarations never reorder the
plan; they are checked when the plan is built.
"""

import typing
from enum import Enum

import attr
from dependencies import Injector, value
from eliot import ActionType, Field, MessageType
from networkx import DiGraph, find_cycle, is_directed_acyclic_graph

from hostprep.errors import EnvironmentMismatch, InsufficientPrivilege, StepActionFailure
from hostprep.steps import Step, StepStatus


def _serialize_report(report):
    return [[result.name, result.status.value] for result in report]


BUILDING_PLAN = ActionType(
    "hostprep:sequencer:building_plan",
    [Field("name", str, "The name of the sequencer")],
    [
        Field("name", str, "The name of the sequencer"),
        Field("steps", lambda steps: [s.name for s in steps], "The ordered plan"),
    ],
)

RUN_SEQUENCE = ActionType(
    "hostprep:sequencer:run",
    [Field("name", str, "The name of the sequencer")],
    [Field("report", _serialize_report, "The status of every attempted step")],
)

EXECUTING_STEP = ActionType(
    "hostprep:sequencer:executing_step",
    [
        Field("step", str, "The name of the step"),
        Field("fatal", bool, "Whether a failure aborts the run"),
    ],
    [Field("status", str, "The resulting status")],
)

STEP_SKIPPED = MessageType(
    "hostprep:sequencer:step_skipped",
    [Field("step", str, "The name of the step")],
    "The step's effect is already present.",
)

STEP_COMPLETED = MessageType(
    "hostprep:sequencer:step_completed",
    [
        Field("step", str, "The name of the step"),
        Field("detail", str, "What the action reported"),
    ],
)

STEP_FAILED = MessageType(
    "hostprep:sequencer:step_failed",
    [
        Field("step", str, "The name of the step"),
        Field("fatal", bool, "Whether the failure aborts the run"),
        Field("reason", str, "Why it failed"),
    ],
)

ENVIRONMENT_MISMATCH = MessageType(
    "hostprep:sequencer:environment_mismatch",
    [
        Field("expected", str, "The OS version the plan is tailored for"),
        Field("detected", str, "The OS version found on the host"),
    ],
)

INSUFFICIENT_PRIVILEGE = MessageType(
    "hostprep:sequencer:insufficient_privilege",
    [
        Field("effective_uid", int, "The uid of the process"),
        Field("required_uid", int, "The uid the plan must run as"),
    ],
)


class SequencerState(Enum):
    """An enum representing the lifecycle stages of a Sequencer."""

    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@attr.s(auto_attribs=True, frozen=True)
class StepResult:
    name: str
    status: StepStatus
    detail: typing.Optional[str] = None


@attr.s(auto_attribs=True)
class RunReport:
    """The ordered outcome of a run."""

    name: str
    results: typing.List[StepResult] = attr.Factory(list)
    failure: typing.Optional[StepActionFailure] = None

    def __iter__(self) -> typing.Iterator[StepResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def append(self, result: StepResult) -> None:
        self.results.append(result)

    def statuses(self) -> typing.List[typing.Tuple[str, StepStatus]]:
        return [(result.name, result.status) for result in self.results]

    @property
    def aborted(self) -> bool:
        """Whether a fatal step failed and the run stopped early."""
        return any(r.status is StepStatus.FAILED_FATAL for r in self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted else 0


def build_plan(name: str, bootsteps: typing.Sequence[Step]) -> typing.List[Step]:
    """Validate the declared requirements of an ordered list of steps."""
    with BUILDING_PLAN(name=name) as action:
        positions = {}
        for position, step in enumerate(bootsteps):
            if step.name in positions:
                raise ValueError(f"Duplicate step name: {step.name!r}.")
            positions[step.name] = position

        graph = DiGraph()
        graph.add_nodes_from(positions)
        for step in bootsteps:
            for required in step.requires:
                if required not in positions:
                    raise ValueError(
                        f"{step.name!r} requires an unknown step {required!r}."
                    )
                graph.add_edge(required, step.name)

        if not is_directed_acyclic_graph(graph):
            cycle = " -> ".join(edge[0] for edge in find_cycle(graph))
            raise ValueError(f"Circular dependencies found: {cycle}.")

        for required, dependent in graph.edges:
            if positions[required] > positions[dependent]:
                raise ValueError(
                    f"{dependent!r} is declared before {required!r}, which it requires."
                )

        plan = list(bootsteps)
        action.add_success_fields(name=name, steps=plan)

    return plan


@attr.s(auto_attribs=True, eq=False)
class Sequencer:
    """Runs an ordered plan of steps exactly once each."""

    _steps: typing.List[Step]
    host: typing.Any = attr.ib(kw_only=True)
    name: str = attr.ib(default="Sequencer", kw_only=True)
    expected_os_version: typing.Optional[str] = attr.ib(default=None, kw_only=True)
    required_uid: int = attr.ib(default=0, kw_only=True)
    state: SequencerState = attr.ib(default=SequencerState.INITIALIZED, init=False)

    @property
    def steps(self) -> typing.List[Step]:
        return list(self._steps)

    def check_privilege(self) -> None:
        """Refuse to run unless the process has the required identity."""
        effective_uid = self.host.effective_uid
        if effective_uid != self.required_uid:
            INSUFFICIENT_PRIVILEGE.log(
                effective_uid=effective_uid, required_uid=self.required_uid
            )
            raise InsufficientPrivilege(effective_uid, self.required_uid)

    def check_environment(self) -> typing.Optional[EnvironmentMismatch]:
        """Warn when the host runs a different OS version than expected."""
        if self.expected_os_version is None:
            return None

        detected = self.host.os_release.get("VERSION_ID")
        if detected == self.expected_os_version:
            return None

        ENVIRONMENT_MISMATCH.log(
            expected=self.expected_os_version, detected=detected or "unknown"
        )
        return EnvironmentMismatch(self.expected_os_version, detected)

    def run(self) -> RunReport:
        """Execute the plan and report the status of every attempted step."""
        with RUN_SEQUENCE.as_task(name=self.name) as action:
            try:
                self.check_privilege()
            except InsufficientPrivilege:
                self.state = SequencerState.FAILED
                raise

            self.check_environment()
            self.state = SequencerState.RUNNING

            report = RunReport(self.name)
            for step in self._steps:
                result, failure = self._run_step(step)
                report.append(result)
                if result.status is StepStatus.FAILED_FATAL:
                    report.failure = failure
                    break

            self.state = (
                SequencerState.FAILED if report.aborted else SequencerState.COMPLETED
            )
            action.add_success_fields(report=report)

        return report

    def _run_step(
        self, step: Step
    ) -> typing.Tuple[StepResult, typing.Optional[StepActionFailure]]:
        label = step.describe()
        try:
            with EXECUTING_STEP(step=label, fatal=step.fatal) as action:
                if not step.always_run and step.is_satisfied():
                    STEP_SKIPPED.log(step=label)
                    status = StepStatus.SKIPPED
                    detail = None
                else:
                    detail = step()
                    if step.verify and not step.always_run and not step.is_satisfied():
                        raise RuntimeError("Effect still absent after the action ran.")
                    status = StepStatus.OK
                    if detail:
                        STEP_COMPLETED.log(step=label, detail=detail)
                action.add_success_fields(status=status.value)
        except Exception as e:
            failure = e if isinstance(e, StepActionFailure) else StepActionFailure(label, e)
            STEP_FAILED.log(step=label, fatal=step.fatal, reason=str(failure.cause))
            status = StepStatus.FAILED_FATAL if step.fatal else StepStatus.FAILED_NONFATAL
            return StepResult(label, status, str(failure.cause)), failure

        return StepResult(label, status, detail), None


class SequencerContainer(Injector):
    """A container which validates a plan of steps and builds its sequencer."""

    bootsteps = []
    name = "Sequencer"

    @value
    def steps(name, bootsteps):
        """Validate the declared order of the steps."""
        return build_plan(name, bootsteps)

    sequencer = Sequencer
