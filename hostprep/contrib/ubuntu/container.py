"""Wiring of the Ubuntu provisioning plan."""
import os

import requests
from dependencies import value

from hostprep.contrib.ubuntu import default_steps
from hostprep.sequencer import SequencerContainer
from hostprep.settings import Settings
from hostprep.system import Accounts, Apt, CommandRunner, Downloader, Host


class ProvisioningContainer(SequencerContainer):
    """Builds the sequencer which provisions this host."""

    name = "hostprep"
    environ = os.environ

    @value
    def settings(environ):
        return Settings.from_environ(environ)

    @value
    def os_release_path(settings):
        return settings.os_release_path

    @value
    def expected_os_version(settings):
        return settings.expected_os_version

    runner = CommandRunner
    apt = Apt
    session = requests.Session
    downloader = Downloader
    accounts = Accounts
    host = Host

    @value
    def bootsteps(settings, runner, apt, downloader, accounts, host):
        return default_steps(settings, runner, apt, downloader, accounts, host)
