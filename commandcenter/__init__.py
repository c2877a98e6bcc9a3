"""Command Center — provisioning orchestrator for a multi-service appliance."""

__version__ = "0.1.0"
