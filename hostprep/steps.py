"""Steps are objects which define how to bring one aspect of the host into shape."""
import contextlib
import typing
from collections import abc
from enum import Enum

import attr
from eliot import Field, MessageType

from hostprep.errors import SubStepFailure

SUBSTEP_FAILED = MessageType(
    "hostprep:steps:substep_failed",
    [
        Field("step", str, "The name of the step"),
        Field("substep", str, "The best-effort part of the step which failed"),
        Field("reason", str, "Why it failed"),
    ],
)


class StepStatus(Enum):
    """The outcome of a single step in a run."""

    OK = "OK"
    SKIPPED = "SKIPPED"
    FAILED_NONFATAL = "FAILED_NONFATAL"
    FAILED_FATAL = "FAILED_FATAL"


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class Step(abc.Callable):
    """A step in the provisioning of the host."""

    name: str = "Step"
    fatal: bool = True
    requires: typing.Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    always_run: bool = False
    verify: bool = True
    substep_failures: typing.List[SubStepFailure] = attr.ib(factory=list, init=False)

    def describe(self) -> str:
        return self.name

    def is_satisfied(self) -> bool:
        """Return True if the step's effect is already present on the host."""
        return False

    def __call__(self) -> typing.Optional[str]:
        """Perform the mutation and optionally return a detail for the report."""
        raise NotImplementedError

    @contextlib.contextmanager
    def best_effort(self, substep: str) -> typing.Iterator[None]:
        """Swallow and log the failure of a part of this step."""
        try:
            yield
        except Exception as e:
            failure = SubStepFailure(self.name, substep, e)
            SUBSTEP_FAILED.log(step=self.name, substep=substep, reason=str(e))
            self.substep_failures.append(failure)
