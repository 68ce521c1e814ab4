"""The host, as seen by steps: processes, packages, downloads, accounts."""
import os
import shlex
import shutil
import socket
import subprocess
import typing
from pathlib import Path

import attr
import requests
from cached_property import cached_property
from eliot import Field, MessageType

from hostprep.errors import CommandFailed, CommandNotFound
from hostprep.settings import Settings

RUNNING_COMMAND = MessageType(
    "hostprep:system:command",
    [
        Field("argv", lambda argv: " ".join(shlex.quote(a) for a in argv), "The command"),
        Field("returncode", int, "Its exit status"),
    ],
)

DOWNLOADING = MessageType(
    "hostprep:system:download",
    [Field("url", str, "The URL"), Field("destination", str, "Where it was saved")],
)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

APT_OPTIONS = (
    "-y",
    "-o",
    "Dpkg::Options::=--force-confdef",
    "-o",
    "Dpkg::Options::=--force-confold",
)


@attr.s(auto_attribs=True, frozen=True)
class CmdResult:
    argv: typing.List[str]
    returncode: int
    stdout: str
    stderr: str


@attr.s(auto_attribs=True, eq=False)
class CommandRunner:
    """Run subprocesses with consistent logging."""

    settings: Settings = attr.ib(factory=Settings)

    def run(
        self,
        argv: typing.Sequence[str],
        *,
        check: bool = True,
        env: typing.Optional[typing.Mapping[str, str]] = None,
        input_text: typing.Optional[str] = None,
    ) -> CmdResult:
        """Run a command to completion and capture its output."""
        argv = [str(a) for a in argv]
        try:
            completed = subprocess.run(
                argv,
                input=input_text,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=dict(os.environ, **(env or {})),
                timeout=self.settings.command_timeout,
            )
        except FileNotFoundError:
            raise CommandNotFound(argv) from None

        RUNNING_COMMAND.log(argv=argv, returncode=completed.returncode)
        if check and completed.returncode != 0:
            raise CommandFailed(argv, completed.returncode, completed.stderr)

        return CmdResult(argv, completed.returncode, completed.stdout, completed.stderr)

    def which(self, name: str) -> typing.Optional[str]:
        return shutil.which(name)


@attr.s(auto_attribs=True, eq=False)
class Apt:
    """The system package manager."""

    runner: CommandRunner

    def update(self) -> None:
        self.runner.run(["apt-get", "update", "-y"], env=APT_ENV)

    def upgrade(self) -> None:
        self.runner.run(["apt-get", *APT_OPTIONS, "upgrade"], env=APT_ENV)

    def install(self, packages: typing.Sequence[str]) -> None:
        if packages:
            self.runner.run(["apt-get", *APT_OPTIONS, "install", *packages], env=APT_ENV)

    def remove(self, package: str) -> None:
        self.runner.run(["apt-get", *APT_OPTIONS, "remove", package], env=APT_ENV)

    def autoremove(self) -> None:
        self.runner.run(["apt-get", *APT_OPTIONS, "autoremove"], env=APT_ENV)

    def is_installed(self, package: str) -> bool:
        result = self.runner.run(
            ["dpkg-query", "-W", "-f=${Status}", package], check=False
        )
        return result.returncode == 0 and result.stdout.strip() == "install ok installed"

    def architecture(self) -> str:
        return self.runner.run(["dpkg", "--print-architecture"]).stdout.strip()


@attr.s(auto_attribs=True, eq=False)
class Downloader:
    """Fetch remote resources over HTTP."""

    session: requests.Session
    settings: Settings = attr.ib(factory=Settings)

    def _get(self, url: str, **kwargs) -> requests.Response:
        response = self.session.get(url, timeout=self.settings.http_timeout, **kwargs)
        response.raise_for_status()
        return response

    def fetch_text(self, url: str) -> str:
        return self._get(url).text

    def fetch_json(self, url: str) -> typing.Any:
        return self._get(url, headers={"Accept": "application/json"}).json()

    def download(self, url: str, destination: Path) -> Path:
        """Stream a URL into a file."""
        destination = Path(destination)
        with self._get(url, stream=True) as response, destination.open("wb") as f:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                f.write(chunk)
        DOWNLOADING.log(url=url, destination=str(destination))
        return destination


@attr.s(auto_attribs=True, eq=False)
class Accounts:
    """User and group database."""

    runner: CommandRunner

    def login_shell(self, user: str) -> typing.Optional[str]:
        result = self.runner.run(["getent", "passwd", user], check=False)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return result.stdout.strip().split(":")[6]

    def set_login_shell(self, user: str, shell: str) -> None:
        self.runner.run(["chsh", "-s", shell, user])

    def group_members(self, group: str) -> typing.Optional[typing.List[str]]:
        """Return the supplementary members of a group, or None if it is missing."""
        result = self.runner.run(["getent", "group", group], check=False)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        members = result.stdout.strip().split(":")[3]
        return [m for m in members.split(",") if m]

    def add_group(self, group: str) -> None:
        self.runner.run(["groupadd", group])

    def add_to_group(self, user: str, group: str) -> None:
        self.runner.run(["usermod", "-aG", group, user])


def parse_os_release(text: str) -> typing.Dict[str, str]:
    """Parse the shell-style assignments of os-release(5)."""
    release = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            words = shlex.split(raw)
        except ValueError:
            words = [raw]
        release[key.strip()] = words[0] if words else ""
    return release


@attr.s(auto_attribs=True, eq=False)
class Host:
    """Identity facts about the machine being provisioned."""

    os_release_path: Path = attr.ib(default=Path("/etc/os-release"), converter=Path)

    @property
    def effective_uid(self) -> int:
        return os.geteuid()

    @property
    def hostname(self) -> str:
        return socket.gethostname()

    @cached_property
    def os_release(self) -> typing.Dict[str, str]:
        """The host's os-release data, empty if it cannot be read."""
        try:
            return parse_os_release(self.os_release_path.read_text(encoding="utf-8"))
        except OSError:
            return {}

    @property
    def codename(self) -> typing.Optional[str]:
        release = self.os_release
        return release.get("UBUNTU_CODENAME") or release.get("VERSION_CODENAME")
