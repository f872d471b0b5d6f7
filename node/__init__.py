"""
Node: the mounting side

Runs on every node that hosts workloads.
Responsibilities:
- Stage volumes (credentials + mount at the staging path)
- Publish/unpublish volumes into workload paths (bind mounts)
- Unstage volumes and delete dedicated per-volume users
- Keep per-volume cache entries that survive process restarts
"""
