"""Runtime settings, overridable from the environment."""
import os
import typing
from pathlib import Path

import attr

ENVIRONMENT_PREFIX = "HOSTPREP_"


def _to_bool(value: typing.Union[str, bool]) -> bool:
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def _to_optional_float(value: typing.Union[str, float, None]) -> typing.Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _to_optional_str(value: typing.Optional[str]) -> typing.Optional[str]:
    return value or None


_optional_path = attr.converters.optional(Path)


@attr.s(auto_attribs=True, frozen=True, kw_only=True)
class Settings:
    """Where and how the host gets provisioned."""

    user: str = "root"
    home: Path = attr.ib(default=Path("/root"), converter=Path)
    bin_dir: Path = attr.ib(default=Path("/usr/local/bin"), converter=Path)
    snap_bin_dir: Path = attr.ib(default=Path("/snap/bin"), converter=Path)
    tmp_dir: typing.Optional[Path] = attr.ib(default=None, converter=_optional_path)
    expected_os_version: str = "22.04"
    os_release_path: Path = attr.ib(default=Path("/etc/os-release"), converter=Path)
    log_file: Path = attr.ib(default=Path("/var/log/hostprep.log"), converter=Path)
    http_timeout: float = attr.ib(default=60.0, converter=float)
    command_timeout: typing.Optional[float] = attr.ib(
        default=None, converter=_to_optional_float
    )
    keyrings_dir: Path = attr.ib(default=Path("/etc/apt/keyrings"), converter=Path)
    sources_dir: Path = attr.ib(
        default=Path("/etc/apt/sources.list.d"), converter=Path
    )
    login_shell: str = "zsh"
    doctl_version: typing.Optional[str] = attr.ib(
        default=None, converter=_to_optional_str
    )
    prefer_snap: bool = attr.ib(default=True, converter=_to_bool)

    @classmethod
    def from_environ(
        cls, environ: typing.Optional[typing.Mapping[str, str]] = None
    ) -> "Settings":
        """Build settings from ``HOSTPREP_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in attr.fields(cls):
            key = ENVIRONMENT_PREFIX + field.name.upper()
            if key in environ:
                overrides[field.name] = environ[key]
        return cls(**overrides)

    @property
    def zshrc(self) -> Path:
        return self.home / ".zshrc"

    @property
    def kube_dir(self) -> Path:
        return self.home / ".kube"

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"

    @property
    def ssh_key_path(self) -> Path:
        return self.ssh_dir / "id_ed25519"

    @property
    def oh_my_zsh_dir(self) -> Path:
        return self.home / ".oh-my-zsh"

    @property
    def pipx_config_dir(self) -> Path:
        return self.home / ".config" / "pipx"
