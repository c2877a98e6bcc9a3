"""
Domain models — types shared by the provisioning core.

    from commandcenter.core.models import Phase, Step, RunState, ValidationCheck
"""

from commandcenter.core.models.config_block import Backup, ConfigBlock, MutationResult
from commandcenter.core.models.conflict import (
    ContainerRecord,
    ContainerRequest,
    PortBinding,
    PortRequest,
    Resolution,
)
from commandcenter.core.models.phase import (
    FailurePolicy,
    Phase,
    PhaseResult,
    PhaseStatus,
    Step,
    StepReceipt,
)
from commandcenter.core.models.state import PhaseRecord, RunState
from commandcenter.core.models.validation import CheckKind, Outcome, ValidationCheck

__all__ = [
    # config_block.py
    "Backup",
    "CheckKind",
    "ConfigBlock",
    # conflict.py
    "ContainerRecord",
    "ContainerRequest",
    "FailurePolicy",
    "MutationResult",
    "Outcome",
    # phase.py
    "Phase",
    "PhaseRecord",
    "PhaseResult",
    "PhaseStatus",
    "PortBinding",
    "PortRequest",
    "Resolution",
    # state.py
    "RunState",
    "Step",
    "StepReceipt",
    # validation.py
    "ValidationCheck",
]
