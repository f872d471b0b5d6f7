"""
Mounter running the host's mount tooling.

Kernel mounts use `mount -t ceph`, fuse mounts use `ceph-fuse` with the
per-volume client config written at stage time.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import List

from shared.errors import MountError
from shared.interfaces import Credentials, Mounter

logger = logging.getLogger(__name__)


class CommandMounter(Mounter):

    def __init__(self, config_root: str, timeout_seconds: int = 60):
        self.config_root = Path(config_root)
        self.timeout_seconds = timeout_seconds

    def _run(self, args: List[str]) -> None:
        logger.debug(f"running {args[0]} {' '.join(args[1:])}")
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise MountError(f"{args[0]} failed: {e}") from e
        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise MountError(f"{args[0]} failed with exit code {result.returncode}: {output}")

    def mount(self, path: str, creds: Credentials, options, volume_id: str) -> None:
        root_path = options.root_path or "/"
        if options.mounter == "fuse":
            self._run([
                "ceph-fuse", path,
                "-c", str(self.config_root / f"{volume_id}.conf"),
                "-n", f"client.{creds.id}",
                "--key", creds.key,
                "-r", root_path,
                "-o", "nonempty",
            ])
            return

        source = f"{','.join(options.monitor_list())}:{root_path}"
        self._run([
            "mount", "-t", "ceph", source, path,
            "-o", f"name={creds.id},secret={creds.key}",
        ])

    def bind_mount(self, src: str, dst: str, read_only: bool) -> None:
        self._run(["mount", "--bind", src, dst])
        if read_only:
            self._run(["mount", "-o", "remount,ro,bind", dst])

    def unmount(self, path: str) -> None:
        self._run(["umount", path])

    def is_mount_point(self, path: str) -> bool:
        if not os.path.exists(path):
            return False
        return os.path.ismount(path)
