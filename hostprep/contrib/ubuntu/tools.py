"""Steps which install command-line tools."""
import contextlib
import shutil
import tarfile
import tempfile
import typing
from pathlib import Path

import attr

from hostprep.errors import CommandFailed
from hostprep.steps import Step
from hostprep.system import Apt, CommandRunner, Downloader

KUBECTL_RELEASE_URL = "https://dl.k8s.io/release"
DOCTL_RELEASES_URL = "https://github.com/digitalocean/doctl/releases/download"
DOCTL_LATEST_RELEASE_URL = "https://api.github.com/repos/digitalocean/doctl/releases/latest"
DOCTL_SNAP_INTERFACES = (
    ("doctl:kube-config",),
    ("doctl:ssh-keys", ":ssh-keys"),
    ("doctl:dot-docker",),
)


def _pipx_packages(runner: CommandRunner) -> typing.List[str]:
    result = runner.run(["pipx", "list", "--short"], check=False)
    if result.returncode != 0:
        return []
    return [line.split()[0] for line in result.stdout.splitlines() if line.strip()]


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class PipxInstall(Step):
    """Install a Python application into its own pipx environment."""

    runner: CommandRunner
    package: str
    include_deps: bool = False
    name: str = attr.ib()
    fatal: bool = False

    @name.default
    def _default_name(self):
        return f"Installing {self.package} via pipx"

    def is_satisfied(self) -> bool:
        return self.package in _pipx_packages(self.runner)

    def __call__(self) -> typing.Optional[str]:
        argv = ["pipx", "install"]
        if self.include_deps:
            argv.append("--include-deps")
        argv.append(self.package)

        try:
            self.runner.run(argv)
        except CommandFailed as install_error:
            try:
                self.runner.run(["pipx", "upgrade", self.package])
            except CommandFailed as upgrade_error:
                raise RuntimeError(
                    f"install failed ({install_error.returncode}) and "
                    f"upgrade failed ({upgrade_error.returncode})"
                ) from upgrade_error
            return "install failed; upgraded existing installation"
        return None


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class PipxInject(Step):
    """Install an extra library into an existing pipx environment."""

    runner: CommandRunner
    application: str
    package: str
    name: str = attr.ib()
    fatal: bool = False

    @name.default
    def _default_name(self):
        return f"Injecting {self.package} into {self.application}"

    def is_satisfied(self) -> bool:
        result = self.runner.run(
            ["pipx", "runpip", self.application, "show", self.package], check=False
        )
        return result.returncode == 0

    def __call__(self) -> None:
        self.runner.run(["pipx", "inject", self.application, self.package])


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class DownloadedTool(Step):
    """A single executable fetched from the internet into a binary directory."""

    runner: CommandRunner
    downloader: Downloader
    apt: Apt
    executable: str
    bin_dir: Path = attr.ib(converter=Path)
    tmp_dir: typing.Optional[Path] = attr.ib(
        default=None, converter=attr.converters.optional(Path)
    )
    search_dirs: typing.Tuple[Path, ...] = attr.ib(
        default=(), converter=lambda dirs: tuple(Path(d) for d in dirs)
    )

    @property
    def target(self) -> Path:
        return self.bin_dir / self.executable

    def is_satisfied(self) -> bool:
        if self.runner.which(self.executable):
            return True
        return any((d / self.executable).is_file() for d in (self.bin_dir, *self.search_dirs))

    @contextlib.contextmanager
    def scratch(self) -> typing.Iterator[Path]:
        """A temporary directory removed on every exit path."""
        if self.tmp_dir is not None:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(
            prefix=f"hostprep-{self.executable}-", dir=self.tmp_dir
        ) as scratch:
            yield Path(scratch)

    def install_executable(self, source: Path) -> Path:
        """Place an executable at the target path with mode 0755."""
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        staged = self.target.with_name(f".{self.executable}.partial")
        shutil.copyfile(source, staged)
        staged.chmod(0o755)
        staged.replace(self.target)
        return self.target


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class InstallKubectl(DownloadedTool):
    """Install the latest stable kubectl for the host architecture."""

    executable: str = "kubectl"
    release_url: str = KUBECTL_RELEASE_URL
    name: str = "Installing kubectl (latest stable)"

    def __call__(self) -> str:
        version = self.downloader.fetch_text(f"{self.release_url}/stable.txt").strip()
        arch = self.apt.architecture()

        with self.scratch() as scratch:
            binary = self.downloader.download(
                f"{self.release_url}/{version}/bin/linux/{arch}/kubectl",
                scratch / "kubectl",
            )
            self.install_executable(binary)
        return f"kubectl {version}"


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class InstallDoctl(DownloadedTool):
    """Install doctl from snap when available, or from the release archive."""

    executable: str = "doctl"
    version: typing.Optional[str] = None
    prefer_snap: bool = True
    releases_url: str = DOCTL_RELEASES_URL
    latest_release_url: str = DOCTL_LATEST_RELEASE_URL
    name: str = "Installing doctl"
    fatal: bool = False

    def resolve_version(self) -> str:
        if self.version:
            return self.version.lstrip("v")
        release = self.downloader.fetch_json(self.latest_release_url)
        return release["tag_name"].lstrip("v")

    def __call__(self) -> str:
        if self.prefer_snap and self.runner.which("snap"):
            return self.install_from_snap()
        return self.install_from_archive()

    def install_from_snap(self) -> str:
        self.runner.run(["snap", "install", "doctl"])
        for interface in DOCTL_SNAP_INTERFACES:
            with self.best_effort(f"connecting {interface[0]}"):
                self.runner.run(["snap", "connect", *interface])
        return "doctl (snap)"

    def install_from_archive(self) -> str:
        version = self.resolve_version()
        arch = self.apt.architecture()
        archive_name = f"doctl-{version}-linux-{arch}.tar.gz"

        with self.scratch() as scratch:
            archive = self.downloader.download(
                f"{self.releases_url}/v{version}/{archive_name}", scratch / archive_name
            )
            extracted = scratch / self.executable
            with tarfile.open(archive, "r:gz") as tar:
                member = tar.getmember(self.executable)
                if not member.isfile():
                    raise RuntimeError(f"{archive_name} has no {self.executable} file.")
                with tar.extractfile(member) as source, extracted.open("wb") as f:
                    shutil.copyfileobj(source, f)
            self.install_executable(extracted)
        return f"doctl {version}"
