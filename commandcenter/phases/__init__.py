"""Feature Phases — the provisioning plan built on the core engine."""

from commandcenter.phases.catalog import build_phases

__all__ = ["build_phases"]
