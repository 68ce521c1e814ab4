"""Idempotent provisioning of a freshly installed server."""
from hostprep.sequencer import RunReport, Sequencer, SequencerContainer, StepResult
from hostprep.steps import Step, StepStatus

__all__ = [
    "RunReport",
    "Sequencer",
    "SequencerContainer",
    "Step",
    "StepResult",
    "StepStatus",
]
