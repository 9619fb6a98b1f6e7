"""Git command gateway, repository queries and status reconciliation."""

from .gateway import GitCommandGateway
from .repository import GitRepository
from .repository_info import DETACHED, StatusCode, StatusReport, RemoteDescriptor, BranchTracking
from .status import StatusReconciler, classify_ranges

__all__ = [
    'GitCommandGateway',
    'GitRepository',
    'DETACHED',
    'StatusCode',
    'StatusReport',
    'RemoteDescriptor',
    'BranchTracking',
    'StatusReconciler',
    'classify_ranges'
]
