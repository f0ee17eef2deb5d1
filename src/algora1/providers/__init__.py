"""
Cloud providers — the control plane the orchestrator talks to.

Only Google Cloud is wired up; the probe/control split keeps reads and
writes apart so the orchestrator can infer state without side effects.
"""

from .gcloud import CloudControl, CloudResourceProbe, GCloudRunner

__all__ = ["CloudControl", "CloudResourceProbe", "GCloudRunner"]
