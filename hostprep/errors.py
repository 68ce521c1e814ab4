"""Errors raised while provisioning a host."""
import typing


class ProvisioningError(Exception):
    """Base class for every error raised by hostprep."""


class InsufficientPrivilege(ProvisioningError):
    """The process does not run under the required identity."""

    def __init__(self, effective_uid: int, required_uid: int = 0) -> None:
        super().__init__(
            f"Must run as uid {required_uid}; running as uid {effective_uid}."
        )
        self.effective_uid = effective_uid
        self.required_uid = required_uid


class EnvironmentMismatch(ProvisioningError):
    """The host does not run the expected OS version.

    This is advisory. It is logged and never raised by the sequencer.
    """

    def __init__(self, expected: str, detected: typing.Optional[str]) -> None:
        super().__init__(
            f"Expected OS version {expected}; detected {detected or 'unknown'}."
        )
        self.expected = expected
        self.detected = detected


class StepActionFailure(ProvisioningError):
    """A step's precondition or action failed."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class SubStepFailure(ProvisioningError):
    """A best-effort part of a step failed."""

    def __init__(self, step: str, substep: str, cause: BaseException) -> None:
        super().__init__(f"{step}: {substep} failed: {cause}")
        self.step = step
        self.substep = substep
        self.cause = cause


class LookupNotFound(ProvisioningError):
    """A cluster label did not match any known cluster."""

    exit_code = 2

    def __init__(self, label: str) -> None:
        super().__init__(f"Cluster not found: {label}")
        self.label = label


class CommandFailed(ProvisioningError):
    """A subprocess exited with a non-zero status."""

    def __init__(self, argv: typing.Sequence[str], returncode: int, stderr: str = "") -> None:
        message = f"Command failed ({returncode}): {' '.join(argv)}"
        if stderr.strip():
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


class CommandNotFound(CommandFailed):
    """The executable of a command is not installed."""

    def __init__(self, argv: typing.Sequence[str]) -> None:
        super().__init__(argv, 127, f"{argv[0]}: command not found")
