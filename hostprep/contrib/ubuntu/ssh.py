"""Steps which bootstrap the account's SSH credentials."""
import stat
from pathlib import Path

import attr

from hostprep.steps import Step
from hostprep.system import CommandRunner, Host

PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
SSH_DIR_MODE = 0o700


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


@attr.s(auto_attribs=True, eq=False, kw_only=True)
class GenerateKeypair(Step):
    """Create a passphrase-less ed25519 keypair, never replacing an existing one."""

    runner: CommandRunner
    host: Host
    user: str
    key_path: Path = attr.ib(converter=Path)
    key_type: str = "ed25519"
    name: str = "Creating SSH key (ed25519)"

    @property
    def public_key_path(self) -> Path:
        return self.key_path.with_name(self.key_path.name + ".pub")

    def is_satisfied(self) -> bool:
        private, public = self.key_path, self.public_key_path
        return (
            private.is_file()
            and public.is_file()
            and _mode(private) == PRIVATE_KEY_MODE
            and _mode(public) == PUBLIC_KEY_MODE
        )

    def __call__(self) -> str:
        ssh_dir = self.key_path.parent
        ssh_dir.mkdir(parents=True, exist_ok=True)
        ssh_dir.chmod(SSH_DIR_MODE)

        detail = f"kept existing key at {self.key_path}"
        if not self.key_path.exists():
            self.runner.run(
                [
                    "ssh-keygen",
                    "-t",
                    self.key_type,
                    "-N",
                    "",
                    "-f",
                    str(self.key_path),
                    "-C",
                    f"{self.user}@{self.host.hostname}",
                ]
            )
            detail = f"generated {self.key_path}"
        elif not self.public_key_path.exists():
            derived = self.runner.run(["ssh-keygen", "-y", "-f", str(self.key_path)])
            self.public_key_path.write_text(derived.stdout, encoding="utf-8")
            detail = f"derived {self.public_key_path} from the existing key"

        self.key_path.chmod(PRIVATE_KEY_MODE)
        self.public_key_path.chmod(PUBLIC_KEY_MODE)
        return detail
