import stat
from unittest.mock import Mock

import pytest
import requests

from hostprep import Sequencer, StepStatus
from hostprep.contrib.ubuntu.docker import (
    DOCKER_REPOSITORY_URL,
    AddAptRepository,
    EnsureGroupMembership,
)
from hostprep.errors import CommandFailed
from hostprep.steps import SUBSTEP_FAILED
from tests.assertions import assert_statuses, logged_messages
from tests.mocks import FakeHost, create_mock_step

KEY = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\n...\n"


@pytest.fixture
def repository(settings, fake_apt, fake_downloader, fake_host):
    fake_downloader.resources[f"{DOCKER_REPOSITORY_URL}/gpg"] = KEY
    return AddAptRepository(
        apt=fake_apt,
        downloader=fake_downloader,
        host=fake_host,
        keyring=settings.keyrings_dir / "docker.asc",
        source_list=settings.sources_dir / "docker.list",
    )


def test_add_repository(repository, settings):
    assert not repository.is_satisfied()

    repository()

    keyring = settings.keyrings_dir / "docker.asc"
    assert repository.is_satisfied()
    assert keyring.read_bytes() == KEY
    assert stat.S_IMODE(keyring.stat().st_mode) == 0o644
    assert stat.S_IMODE(settings.keyrings_dir.stat().st_mode) == 0o755
    assert (settings.sources_dir / "docker.list").read_text() == (
        f"deb [arch=amd64 signed-by={keyring}] "
        "https://download.docker.com/linux/ubuntu jammy stable\n"
    )
    assert list(settings.keyrings_dir.iterdir()) == [keyring]


def test_add_repository_uses_the_host_architecture(repository, fake_apt, settings):
    fake_apt.arch = "arm64"

    repository()

    assert "[arch=arm64 " in (settings.sources_dir / "docker.list").read_text()


def test_failed_key_download_leaves_nothing_behind(repository, fake_downloader, settings):
    fake_downloader.resources.clear()

    with pytest.raises(requests.HTTPError):
        repository()

    assert not repository.is_satisfied()
    assert list(settings.keyrings_dir.iterdir()) == []
    assert not (settings.sources_dir / "docker.list").exists()


def test_add_repository_without_a_codename(repository, settings):
    repository.host = FakeHost(os_release={"VERSION_ID": "22.04"})

    with pytest.raises(RuntimeError, match="codename"):
        repository()

    assert not settings.keyrings_dir.exists()


def test_group_membership(fake_accounts):
    step = EnsureGroupMembership(accounts=fake_accounts, user="root")

    assert step.fatal is True
    assert not step.is_satisfied()

    step()

    assert step.is_satisfied()
    assert fake_accounts.calls == [("groupadd", "docker"), ("usermod", "root", "docker")]


def test_group_membership_with_an_existing_group(fake_accounts):
    fake_accounts.groups["docker"] = ["ops"]
    step = EnsureGroupMembership(accounts=fake_accounts, user="root")

    step()

    assert fake_accounts.groups["docker"] == ["ops", "root"]
    assert fake_accounts.calls == [("usermod", "root", "docker")]


def test_group_membership_failure_is_swallowed(fake_accounts, fake_host, logger):
    fake_accounts.add_to_group = Mock(side_effect=CommandFailed(["usermod"], 6))
    step = EnsureGroupMembership(accounts=fake_accounts, user="root")

    report = Sequencer([step], host=fake_host).run()

    assert_statuses(report, [(step.name, StepStatus.OK)])
    assert report.results[0].detail == "root could not be added to docker"
    assert fake_accounts.groups["docker"] == []
    (message,) = logged_messages(logger, SUBSTEP_FAILED)
    assert message["substep"] == "adding root to docker"


def test_group_creation_failure_is_fatal(fake_accounts, fake_host):
    fake_accounts.add_group = Mock(side_effect=CommandFailed(["groupadd", "docker"], 10))
    step = EnsureGroupMembership(accounts=fake_accounts, user="root")

    report = Sequencer([step, create_mock_step("next")], host=fake_host).run()

    assert_statuses(report, [(step.name, StepStatus.FAILED_FATAL)])
    assert report.aborted
