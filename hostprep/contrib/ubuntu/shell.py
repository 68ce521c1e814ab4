"""Steps which configure the account's login shell and its resource file."""
import shlex
import stat
import sys
import typing
from pathlib import Path

import attr

from hostprep.steps import Step
from hostprep.system import Accounts, CommandRunner, Downloader

OH_MY_ZSH_INSTALLER_URL = (
    "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
)

LOCAL_BIN_PATH_LINE = "export PATH=~/.local/bin:$PATH"

KUBECONFIG_HELPER_MARKER = "lke-save()"

KUBECONFIG_HELPER_BLOCK = """
# Linode LKE kubeconfig merge helper
lke-save() {{
	{python} -m hostprep lke-save "$@"
}}
"""


def kubeconfig_helper_block(python: typing.Optional[str] = None) -> str:
    """The shell function which merges a cluster's kubeconfig into ~/.kube/config."""
    return KUBECONFIG_HELPER_BLOCK.format(python=shlex.quote(python or sys.executable))


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class AppendBlock(Step):
    """Append a block of text to a file unless a marker line is already present."""

    path: Path = attr.ib(converter=Path)
    marker: str
    block: str

    def is_satisfied(self) -> bool:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        return any(line.startswith(self.marker) for line in text.splitlines())

    def __call__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        block = self.block if self.block.endswith("\n") else self.block + "\n"
        with self.path.open("a+", encoding="utf-8") as f:
            f.seek(0)
            existing = f.read()
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(block)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class EnsureDirectory(Step):
    """Create a directory with an exact mode."""

    path: Path = attr.ib(converter=Path)
    mode: int = 0o755

    def is_satisfied(self) -> bool:
        return self.path.is_dir() and stat.S_IMODE(self.path.stat().st_mode) == self.mode

    def __call__(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self.path.chmod(self.mode)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class ChangeLoginShell(Step):
    """Switch the account's login shell."""

    runner: CommandRunner
    accounts: Accounts
    user: str
    shell: str = "zsh"
    name: str = "Switching default shell to zsh"
    fatal: bool = False

    def shell_path(self) -> str:
        path = self.runner.which(self.shell)
        if not path:
            raise RuntimeError(f"{self.shell} is not installed.")
        return path

    def is_satisfied(self) -> bool:
        path = self.runner.which(self.shell)
        return path is not None and self.accounts.login_shell(self.user) == path

    def __call__(self) -> None:
        self.accounts.set_login_shell(self.user, self.shell_path())


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class InstallOhMyZsh(Step):
    """Run the upstream Oh My Zsh installer without prompts or a shell reload."""

    runner: CommandRunner
    downloader: Downloader
    home: Path = attr.ib(converter=Path)
    installer_url: str = OH_MY_ZSH_INSTALLER_URL
    name: str = "Installing Oh My Zsh"

    @property
    def target(self) -> Path:
        return self.home / ".oh-my-zsh"

    @property
    def zshrc(self) -> Path:
        return self.home / ".zshrc"

    def is_satisfied(self) -> bool:
        return self.target.is_dir()

    def __call__(self) -> None:
        if not self.zshrc.exists():
            self.zshrc.write_text("# ~/.zshrc (created by hostprep)\n", encoding="utf-8")

        installer = self.downloader.fetch_text(self.installer_url)
        self.runner.run(
            ["sh", "-s"],
            input_text=installer,
            env={
                "HOME": str(self.home),
                "ZSH": str(self.target),
                "RUNZSH": "no",
                "CHSH": "no",
                "KEEP_ZSHRC": "yes",
            },
        )
