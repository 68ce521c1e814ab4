"""Steps which install the Docker engine from Docker's own apt repository."""
import typing
from pathlib import Path

import attr

from hostprep.steps import Step
from hostprep.system import Accounts, Apt, Downloader, Host

DOCKER_REPOSITORY_URL = "https://download.docker.com/linux/ubuntu"

DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class AddAptRepository(Step):
    """Register a third-party apt repository signed by a downloaded key."""

    apt: Apt
    downloader: Downloader
    host: Host
    keyring: Path = attr.ib(converter=Path)
    source_list: Path = attr.ib(converter=Path)
    repository_url: str = DOCKER_REPOSITORY_URL
    component: str = "stable"
    name: str = "Adding Docker GPG key & repository"

    @property
    def key_url(self) -> str:
        return f"{self.repository_url}/gpg"

    def is_satisfied(self) -> bool:
        return self.keyring.is_file()

    def source_line(self) -> str:
        codename = self.host.codename
        if not codename:
            raise RuntimeError("Cannot determine the distribution codename.")
        return (
            f"deb [arch={self.apt.architecture()} signed-by={self.keyring}] "
            f"{self.repository_url} {codename} {self.component}\n"
        )

    def __call__(self) -> None:
        line = self.source_line()

        self.keyring.parent.mkdir(parents=True, exist_ok=True)
        self.keyring.parent.chmod(0o755)

        partial = self.keyring.with_name(self.keyring.name + ".partial")
        try:
            self.downloader.download(self.key_url, partial)
            partial.chmod(0o644)
            self.source_list.parent.mkdir(parents=True, exist_ok=True)
            self.source_list.write_text(line, encoding="utf-8")
            partial.replace(self.keyring)
        finally:
            if partial.exists():
                partial.unlink()


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class EnsureGroupMembership(Step):
    """Create a group if missing and add an account to it.

    A failure to create the group is fatal; adding the account is best effort.
    """

    accounts: Accounts
    user: str
    group: str = "docker"
    name: str = "Adding account to the docker group"
    verify: bool = False

    def is_satisfied(self) -> bool:
        members = self.accounts.group_members(self.group)
        return members is not None and self.user in members

    def __call__(self) -> typing.Optional[str]:
        if self.accounts.group_members(self.group) is None:
            self.accounts.add_group(self.group)
        failures = len(self.substep_failures)
        with self.best_effort(f"adding {self.user} to {self.group}"):
            self.accounts.add_to_group(self.user, self.group)
        if len(self.substep_failures) > failures:
            return f"{self.user} could not be added to {self.group}"
        return None
