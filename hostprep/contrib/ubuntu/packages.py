"""Steps which drive the apt package database."""
import typing

import attr

from hostprep.steps import Step
from hostprep.system import Apt

BASE_PACKAGES = (
    "ca-certificates",
    "curl",
    "gnupg",
    "lsb-release",
    "software-properties-common",
    "zsh",
    "mosh",
    "postgresql-client",
    "ruby",
    "git",
    "jq",
    "pipx",
    "python3-venv",
    "python3-pip",
)

LEGACY_DOCKER_PACKAGES = (
    "docker.io",
    "docker-doc",
    "docker-compose",
    "docker-compose-v2",
    "podman-docker",
    "containerd",
    "runc",
)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class RefreshPackageIndex(Step):
    """Refresh the apt package index."""

    apt: Apt
    name: str = "Updating apt package index"
    always_run: bool = True

    def __call__(self) -> None:
        self.apt.update()


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class UpgradePackages(Step):
    """Upgrade every installed package without prompting."""

    apt: Apt
    name: str = "Upgrading existing packages"
    always_run: bool = True

    def __call__(self) -> None:
        self.apt.upgrade()


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class InstallPackages(Step):
    """Install a set of packages, optionally refreshing the index first."""

    apt: Apt
    packages: typing.Tuple[str, ...] = attr.ib(converter=tuple)
    name: str = "Installing base packages"
    refresh_index: bool = False

    def missing(self) -> typing.List[str]:
        return [p for p in self.packages if not self.apt.is_installed(p)]

    def is_satisfied(self) -> bool:
        return not self.missing()

    def __call__(self) -> None:
        if self.refresh_index:
            self.apt.update()
        self.apt.install(self.packages)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class RemovePackages(Step):
    """Remove conflicting packages one by one; individual failures are tolerated."""

    apt: Apt
    packages: typing.Tuple[str, ...] = attr.ib(converter=tuple)
    name: str = "Removing legacy / conflicting Docker packages"
    verify: bool = False

    def installed(self) -> typing.List[str]:
        return [p for p in self.packages if self.apt.is_installed(p)]

    def is_satisfied(self) -> bool:
        return not self.installed()

    def __call__(self) -> typing.Optional[str]:
        for package in self.installed():
            with self.best_effort(f"removing {package}"):
                self.apt.remove(package)
        self.apt.autoremove()

        if self.substep_failures:
            return f"{len(self.substep_failures)} package(s) could not be removed"
        return None
