import pytest
from eliot import MemoryLogger
from eliot.testing import check_for_errors, swap_logger

from hostprep.settings import Settings
from tests.mocks import FakeAccounts, FakeApt, FakeDownloader, FakeHost, FakeRunner


@pytest.fixture(autouse=True)
def logger():
    test_logger = MemoryLogger()
    swap_logger(test_logger)
    yield test_logger
    check_for_errors(test_logger)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fake_apt():
    return FakeApt()


@pytest.fixture
def fake_downloader():
    return FakeDownloader()


@pytest.fixture
def fake_accounts():
    return FakeAccounts(shells={"root": "/bin/bash"})


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        home=tmp_path / "root",
        bin_dir=tmp_path / "usr/local/bin",
        snap_bin_dir=tmp_path / "snap/bin",
        tmp_dir=tmp_path / "tmp",
        keyrings_dir=tmp_path / "etc/apt/keyrings",
        sources_dir=tmp_path / "etc/apt/sources.list.d",
        os_release_path=tmp_path / "etc/os-release",
        log_file=tmp_path / "var/log/hostprep.log",
        doctl_version="1.141.0",
        prefer_snap=False,
    )
