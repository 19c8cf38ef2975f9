"""Application ports - interfaces for external adapters."""

from permctl.application.ports.identity_oracle import IdentityOracle
from permctl.application.ports.policy_synchronizer import PolicySynchronizer
from permctl.application.ports.unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = [
    "IdentityOracle",
    "PolicySynchronizer",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
