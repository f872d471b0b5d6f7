"""
Controller: the provisioning side

Runs once per cluster.
Responsibilities:
- Create and delete backend images (CreateVolume / DeleteVolume)
- Map request names to generated volume IDs
- Keep durable per-volume metadata and its in-memory index
- Validate requested volume capabilities
"""
