"""Render eliot messages as human-readable progress lines."""
import sys
import typing
from pathlib import Path

import attr
from eliot import FileDestination, add_destinations, remove_destination

from hostprep.kubeconfig import CONTEXT_NOT_SELECTED
from hostprep.sequencer import (
    ENVIRONMENT_MISMATCH,
    EXECUTING_STEP,
    INSUFFICIENT_PRIVILEGE,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_SKIPPED,
)
from hostprep.steps import SUBSTEP_FAILED

INFO = "[+]"
WARNING = "[WARN]"
FATAL = "[FATAL]"


@attr.s(auto_attribs=True, eq=False)
class ConsoleRenderer:
    """An eliot destination which prints progress to stdout and problems to stderr."""

    stdout: typing.TextIO = attr.ib(factory=lambda: sys.stdout)
    stderr: typing.TextIO = attr.ib(factory=lambda: sys.stderr)

    def __call__(self, message: typing.Dict[str, typing.Any]) -> None:
        rendered = self.render(message)
        if rendered is None:
            return
        prefix, text = rendered
        stream = self.stdout if prefix == INFO else self.stderr
        stream.write(f"{prefix} {text}\n")
        stream.flush()

    def render(
        self, message: typing.Dict[str, typing.Any]
    ) -> typing.Optional[typing.Tuple[str, str]]:
        """Return the prefix and text for a message, or None to stay quiet."""
        if (
            message.get("action_type") == EXECUTING_STEP.action_type
            and message.get("action_status") == "started"
        ):
            return INFO, f"{message['step']}..."

        message_type = message.get("message_type")
        if message_type == STEP_SKIPPED.message_type:
            return INFO, f"{message['step']}: already satisfied; skipping."
        if message_type == STEP_COMPLETED.message_type:
            return INFO, f"{message['step']}: {message['detail']}"
        if message_type == STEP_FAILED.message_type:
            if message["fatal"]:
                return FATAL, f"{message['step']} failed: {message['reason']}"
            return WARNING, f"{message['step']} failed, continuing: {message['reason']}"
        if message_type == SUBSTEP_FAILED.message_type:
            return WARNING, f"{message['step']}: {message['substep']} failed: {message['reason']}"
        if message_type == ENVIRONMENT_MISMATCH.message_type:
            return (
                WARNING,
                f"This plan is tailored for version {message['expected']}; "
                f"detected {message['detected']}. Continuing anyway.",
            )
        if message_type == CONTEXT_NOT_SELECTED.message_type:
            return WARNING, f"Could not switch to context {message['context']}."
        if message_type == INSUFFICIENT_PRIVILEGE.message_type:
            return FATAL, f"Must run as uid {message['required_uid']} (running as uid {message['effective_uid']})."
        return None


def configure_logging(
    log_file: typing.Optional[Path], console: typing.Optional[ConsoleRenderer] = None
) -> typing.List[typing.Callable]:
    """Send eliot messages to the console and, if possible, a JSON log file.

    Returns the destinations added, for :func:`reset_logging`.
    """
    destinations = [console or ConsoleRenderer()]
    if log_file is not None:
        try:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            destinations.append(FileDestination(file=log_file.open("a", encoding="utf-8")))
        except OSError as e:
            destinations[0].stderr.write(f"{WARNING} Cannot write log file {log_file}: {e}\n")

    add_destinations(*destinations)
    return destinations


def reset_logging(destinations: typing.Iterable[typing.Callable]) -> None:
    for destination in destinations:
        remove_destination(destination)
        if isinstance(destination, FileDestination):
            destination.file.close()
