"""Provisioning plan for an Ubuntu server administered as root."""
import typing

from hostprep.contrib.ubuntu.docker import DOCKER_PACKAGES, AddAptRepository, EnsureGroupMembership
from hostprep.contrib.ubuntu.packages import (
    BASE_PACKAGES,
    LEGACY_DOCKER_PACKAGES,
    InstallPackages,
    RefreshPackageIndex,
    RemovePackages,
    UpgradePackages,
)
from hostprep.contrib.ubuntu.shell import (
    KUBECONFIG_HELPER_MARKER,
    LOCAL_BIN_PATH_LINE,
    AppendBlock,
    ChangeLoginShell,
    EnsureDirectory,
    InstallOhMyZsh,
    kubeconfig_helper_block,
)
from hostprep.contrib.ubuntu.ssh import GenerateKeypair
from hostprep.contrib.ubuntu.tools import InstallDoctl, InstallKubectl, PipxInject, PipxInstall
from hostprep.settings import Settings
from hostprep.steps import Step
from hostprep.system import Accounts, Apt, CommandRunner, Downloader, Host

DOCKER_REPOSITORY_STEP = "Adding Docker GPG key & repository"
LINODE_CLI_STEP = "Installing linode-cli via pipx"


def default_steps(
    settings: Settings,
    runner: CommandRunner,
    apt: Apt,
    downloader: Downloader,
    accounts: Accounts,
    host: Host,
) -> typing.List[Step]:
    """Build the ordered list of steps which provision the host."""
    tool = dict(
        runner=runner,
        downloader=downloader,
        apt=apt,
        bin_dir=settings.bin_dir,
        tmp_dir=settings.tmp_dir,
    )

    return [
        RefreshPackageIndex(apt=apt),
        UpgradePackages(apt=apt),
        InstallPackages(apt=apt, packages=BASE_PACKAGES),
        EnsureDirectory(
            name="Ensuring the pipx config directory exists",
            path=settings.pipx_config_dir,
            mode=0o755,
        ),
        AppendBlock(
            name="Adding ~/.local/bin to the zsh PATH",
            path=settings.zshrc,
            marker=LOCAL_BIN_PATH_LINE,
            block=LOCAL_BIN_PATH_LINE,
        ),
        RemovePackages(apt=apt, packages=LEGACY_DOCKER_PACKAGES),
        AddAptRepository(
            name=DOCKER_REPOSITORY_STEP,
            apt=apt,
            downloader=downloader,
            host=host,
            keyring=settings.keyrings_dir / "docker.asc",
            source_list=settings.sources_dir / "docker.list",
        ),
        InstallPackages(
            name="Installing Docker engine components",
            apt=apt,
            packages=DOCKER_PACKAGES,
            refresh_index=True,
            requires=(DOCKER_REPOSITORY_STEP,),
        ),
        EnsureGroupMembership(
            accounts=accounts,
            user=settings.user,
            group="docker",
            requires=("Installing Docker engine components",),
        ),
        PipxInstall(
            name=LINODE_CLI_STEP,
            runner=runner,
            package="linode-cli",
            include_deps=True,
            requires=("Installing base packages",),
        ),
        PipxInject(
            runner=runner,
            application="linode-cli",
            package="boto3",
            requires=(LINODE_CLI_STEP,),
        ),
        InstallKubectl(**tool),
        InstallDoctl(
            version=settings.doctl_version,
            prefer_snap=settings.prefer_snap,
            search_dirs=(settings.snap_bin_dir,),
            **tool,
        ),
        ChangeLoginShell(
            runner=runner,
            accounts=accounts,
            user=settings.user,
            shell=settings.login_shell,
            requires=("Installing base packages",),
        ),
        InstallOhMyZsh(runner=runner, downloader=downloader, home=settings.home),
        EnsureDirectory(
            name="Ensuring ~/.kube directory exists",
            path=settings.kube_dir,
            mode=0o700,
        ),
        AppendBlock(
            name="Adding lke-save function to .zshrc",
            path=settings.zshrc,
            marker=KUBECONFIG_HELPER_MARKER,
            block=kubeconfig_helper_block(),
        ),
        GenerateKeypair(
            runner=runner,
            host=host,
            user=settings.user,
            key_path=settings.ssh_key_path,
        ),
    ]
