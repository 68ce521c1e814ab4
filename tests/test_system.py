from unittest.mock import MagicMock, Mock

import pytest
import requests

from hostprep.errors import CommandFailed, CommandNotFound
from hostprep.settings import Settings
from hostprep.system import (
    APT_ENV,
    APT_OPTIONS,
    DOWNLOADING,
    RUNNING_COMMAND,
    Accounts,
    Apt,
    CommandRunner,
    Downloader,
    Host,
    parse_os_release,
)
from tests.assertions import logged_messages
from tests.mocks import FakeRunner

OS_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
VERSION="22.04.4 LTS (Jammy Jellyfish)"
VERSION_CODENAME=jammy
ID=ubuntu
ID_LIKE=debian
# a comment
UBUNTU_CODENAME=jammy
"""


def test_command_runner_captures_output(logger):
    runner = CommandRunner()

    result = runner.run(["sh", "-c", "printf out; printf err >&2"])

    assert result.returncode == 0
    assert result.stdout == "out"
    assert result.stderr == "err"
    (message,) = logged_messages(logger, RUNNING_COMMAND)
    assert message["returncode"] == 0


def test_command_runner_passes_input_and_environment():
    runner = CommandRunner()

    result = runner.run(
        ["sh", "-c", 'printf "%s:" "$GREETING"; cat'],
        env={"GREETING": "hello"},
        input_text="world",
    )

    assert result.stdout == "hello:world"


def test_command_runner_raises_on_failure():
    runner = CommandRunner()

    with pytest.raises(CommandFailed) as excinfo:
        runner.run(["sh", "-c", "echo broken >&2; exit 3"])

    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr.strip() == "broken"
    assert "broken" in str(excinfo.value)


def test_command_runner_without_check():
    result = CommandRunner().run(["sh", "-c", "exit 4"], check=False)

    assert result.returncode == 4


def test_command_runner_with_missing_executable():
    with pytest.raises(CommandNotFound) as excinfo:
        CommandRunner().run(["hostprep-no-such-binary"])

    assert excinfo.value.returncode == 127


def test_apt_commands_are_noninteractive():
    runner = FakeRunner()
    apt = Apt(runner)

    apt.update()
    apt.upgrade()
    apt.install(["curl", "git"])
    apt.install([])
    apt.remove("docker.io")
    apt.autoremove()

    assert runner.calls == [
        ["apt-get", "update", "-y"],
        ["apt-get", *APT_OPTIONS, "upgrade"],
        ["apt-get", *APT_OPTIONS, "install", "curl", "git"],
        ["apt-get", *APT_OPTIONS, "remove", "docker.io"],
        ["apt-get", *APT_OPTIONS, "autoremove"],
    ]
    assert all(env == APT_ENV for env in runner.envs)


@pytest.mark.parametrize(
    "returncode, stdout, expected",
    [
        (0, "install ok installed", True),
        (0, "deinstall ok config-files", False),
        (1, "", False),
    ],
)
def test_apt_is_installed(returncode, stdout, expected):
    runner = FakeRunner().on("dpkg-query", returncode=returncode, stdout=stdout)

    assert Apt(runner).is_installed("zsh") is expected


def test_apt_architecture():
    runner = FakeRunner().on("dpkg", "--print-architecture", stdout="arm64\n")

    assert Apt(runner).architecture() == "arm64"


def test_accounts_login_shell():
    runner = FakeRunner().on(
        "getent", "passwd", "root", stdout="root:x:0:0:root:/root:/bin/bash\n"
    )
    runner.on("getent", "passwd", "nobody", returncode=2)

    accounts = Accounts(runner)

    assert accounts.login_shell("root") == "/bin/bash"
    assert accounts.login_shell("nobody") is None


def test_accounts_group_members():
    runner = FakeRunner().on("getent", "group", "docker", stdout="docker:x:999:root,ops\n")
    runner.on("getent", "group", "empty", stdout="empty:x:1000:\n")
    runner.on("getent", "group", "missing", returncode=2)

    accounts = Accounts(runner)

    assert accounts.group_members("docker") == ["root", "ops"]
    assert accounts.group_members("empty") == []
    assert accounts.group_members("missing") is None


def test_accounts_mutations():
    runner = FakeRunner()
    accounts = Accounts(runner)

    accounts.set_login_shell("root", "/usr/bin/zsh")
    accounts.add_group("docker")
    accounts.add_to_group("root", "docker")

    assert runner.calls == [
        ["chsh", "-s", "/usr/bin/zsh", "root"],
        ["groupadd", "docker"],
        ["usermod", "-aG", "docker", "root"],
    ]


def test_downloader_fetch_text():
    session = Mock(spec=requests.Session)
    session.get.return_value.text = "v1.30.0"

    downloader = Downloader(session, Settings(http_timeout=7))

    assert downloader.fetch_text("https://example.test/stable.txt") == "v1.30.0"
    session.get.assert_called_once_with("https://example.test/stable.txt", timeout=7.0)
    session.get.return_value.raise_for_status.assert_called_once_with()


def test_downloader_fetch_json():
    session = Mock(spec=requests.Session)
    session.get.return_value.json.return_value = {"tag_name": "v1.141.0"}

    downloader = Downloader(session)

    assert downloader.fetch_json("https://example.test/latest") == {"tag_name": "v1.141.0"}
    assert session.get.call_args.kwargs["headers"] == {"Accept": "application/json"}


def test_downloader_raises_http_errors():
    session = Mock(spec=requests.Session)
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")

    with pytest.raises(requests.HTTPError):
        Downloader(session).fetch_text("https://example.test/missing")


def test_downloader_download(tmp_path, logger):
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.return_value = [b"ab", b"cd"]
    session = Mock(spec=requests.Session)
    session.get.return_value = response

    destination = Downloader(session).download("https://example.test/bin", tmp_path / "bin")

    assert destination.read_bytes() == b"abcd"
    assert session.get.call_args.kwargs["stream"] is True
    (message,) = logged_messages(logger, DOWNLOADING)
    assert message["url"] == "https://example.test/bin"


def test_parse_os_release():
    release = parse_os_release(OS_RELEASE)

    assert release["VERSION_ID"] == "22.04"
    assert release["PRETTY_NAME"] == "Ubuntu 22.04.4 LTS"
    assert release["UBUNTU_CODENAME"] == "jammy"
    assert "# a comment" not in release


def test_host_reads_os_release(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(OS_RELEASE)

    host = Host(path)

    assert host.os_release["VERSION_ID"] == "22.04"
    assert host.codename == "jammy"


def test_host_with_missing_os_release(tmp_path):
    host = Host(tmp_path / "missing")

    assert host.os_release == {}
    assert host.codename is None
