"""What got installed, as reported at the end of a run."""
import subprocess
import typing
from pathlib import Path

from hostprep.errors import CommandFailed
from hostprep.sequencer import RunReport
from hostprep.system import Accounts, CommandRunner

NOT_FOUND = "not found"

BEGIN_PUBLIC_KEY = "----- BEGIN PUBLIC KEY -----"
END_PUBLIC_KEY = "----- END PUBLIC KEY -----"

VERSION_COMMANDS = (
    ("Docker", ("docker", "--version")),
    ("kubectl version", ("kubectl", "version", "--client")),
    ("doctl version", ("doctl", "version")),
    ("linode-cli version", ("linode-cli", "--version")),
)


def component_version(runner: CommandRunner, argv: typing.Sequence[str]) -> str:
    """The first line a version command prints, or ``not found``."""
    try:
        result = runner.run(argv, check=False)
    except (CommandFailed, OSError, subprocess.TimeoutExpired):
        return NOT_FOUND
    lines = result.stdout.strip().splitlines()
    if result.returncode != 0 or not lines:
        return NOT_FOUND
    return lines[0].strip()


def collect_versions(
    runner: CommandRunner, accounts: Accounts, user: str
) -> typing.List[typing.Tuple[str, str]]:
    versions = [(label, component_version(runner, argv)) for label, argv in VERSION_COMMANDS]
    versions.append(("Default shell set to", accounts.login_shell(user) or NOT_FOUND))
    return versions


def render_report(report: RunReport) -> typing.List[str]:
    return [f"  - {result.name}: {result.status.value}" for result in report]


def render_versions(versions: typing.Iterable[typing.Tuple[str, str]]) -> typing.List[str]:
    return [f"  - {label}: {version}" for label, version in versions]


def render_public_key(public_key_path: Path) -> typing.List[str]:
    """The public key between literal delimiters."""
    try:
        key = public_key_path.read_text(encoding="utf-8").strip()
    except OSError:
        key = NOT_FOUND
    return [BEGIN_PUBLIC_KEY, key, END_PUBLIC_KEY]
