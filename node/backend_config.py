"""
Per-volume backend client configuration.

Each staged volume gets its own client config file naming the monitors to
contact, so mounts of different clusters do not share state.
"""

from dataclasses import dataclass
from pathlib import Path

CONFIG_TEMPLATE = """[global]
mon_host = {monitors}
auth_cluster_required = cephx
auth_service_required = cephx
auth_client_required = cephx
fuse_set_user_groups = false
"""


def get_config_path(config_root: Path, volume_id: str) -> Path:
    return Path(config_root) / f"{volume_id}.conf"


@dataclass
class BackendClientConfig:
    monitors: str
    volume_id: str

    def render(self) -> str:
        return CONFIG_TEMPLATE.format(monitors=self.monitors)

    def write_to_file(self, config_root: Path) -> Path:
        path = get_config_path(config_root, self.volume_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".conf.tmp")
        tmp_path.write_text(self.render(), encoding="utf-8")
        tmp_path.replace(path)
        return path
