"""Stale git branch cleanup tool.

Features:
- List stale branches by age and merge status
- Delete local and remote branches in two confirmed phases
- Write a restore manifest before every deletion
- Restore deleted branches from a manifest
- Retention cleanup of old manifests
"""

__version__ = "0.3.0"
