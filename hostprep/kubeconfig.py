"""Merge a Linode Kubernetes Engine cluster's credentials into ~/.kube/config."""
import base64
import json
from pathlib import Path

import attr
from eliot import ActionType, Field, MessageType

from hostprep.errors import CommandFailed, LookupNotFound
from hostprep.system import CommandRunner

SAVING_KUBECONFIG = ActionType(
    "hostprep:kubeconfig:save",
    [Field("label", str, "The cluster label")],
    [Field("context", str, "The context added to the kubeconfig")],
)

CONTEXT_NOT_SELECTED = MessageType(
    "hostprep:kubeconfig:context_not_selected",
    [Field("context", str, "The context which could not be made current")],
)


def context_name(cluster_id: str) -> str:
    return f"lke{cluster_id}-ctx"


@attr.s(auto_attribs=True, frozen=True)
class MergedCluster:
    cluster_id: str
    context: str


@attr.s(auto_attribs=True, eq=False)
class KubeconfigMerger:
    """Adds clusters to the account's primary kubeconfig, preserving existing contexts."""

    runner: CommandRunner
    kube_dir: Path = attr.ib(factory=lambda: Path.home() / ".kube", converter=Path)

    @property
    def config_path(self) -> Path:
        return self.kube_dir / "config"

    def find_cluster_id(self, label: str) -> str:
        """Return the id of the cluster with the given label."""
        listing = self.runner.run(["linode-cli", "lke", "clusters-list", "--json"])
        try:
            clusters = json.loads(listing.stdout or "[]")
        except ValueError:
            clusters = []
        if not isinstance(clusters, list):
            clusters = []
        for cluster in clusters:
            if (
                isinstance(cluster, dict)
                and cluster.get("label") == label
                and cluster.get("id") is not None
            ):
                return str(cluster["id"])
        raise LookupNotFound(label)

    def fetch_kubeconfig(self, cluster_id: str) -> bytes:
        view = self.runner.run(
            ["linode-cli", "lke", "kubeconfig-view", cluster_id, "--text"]
        )
        # The first line is the column header of the text table.
        encoded = "".join(view.stdout.splitlines()[1:])
        return base64.b64decode(encoded)

    def save(self, label: str) -> MergedCluster:
        """Merge the cluster's kubeconfig and return its id and context."""
        if not label:
            raise ValueError("A cluster label is required.")

        with SAVING_KUBECONFIG(label=label) as action:
            cluster_id = self.find_cluster_id(label)
            kubeconfig = self.fetch_kubeconfig(cluster_id)

            self.kube_dir.mkdir(parents=True, exist_ok=True)
            cluster_config = self.kube_dir / f"{cluster_id}.yaml"
            merged = self.kube_dir / "config.merging"
            try:
                cluster_config.write_bytes(kubeconfig)
                flattened = self.runner.run(
                    ["kubectl", "config", "view", "--flatten"],
                    env={"KUBECONFIG": f"{self.config_path}:{cluster_config}"},
                )
                merged.write_text(flattened.stdout, encoding="utf-8")
                merged.chmod(0o600)
                merged.replace(self.config_path)
            finally:
                for leftover in (cluster_config, merged):
                    if leftover.exists():
                        leftover.unlink()
            self.config_path.chmod(0o600)

            context = context_name(cluster_id)
            if not self.use_context(context):
                CONTEXT_NOT_SELECTED.log(context=context)
            action.add_success_fields(context=context)

        return MergedCluster(cluster_id, context)

    def use_context(self, context: str) -> bool:
        """Select a context; failing to do so is not an error."""
        try:
            self.runner.run(
                ["kubectl", "config", "use-context", context],
                env={"KUBECONFIG": str(self.config_path)},
            )
        except CommandFailed:
            return False
        return True
