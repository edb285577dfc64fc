"""ORM model exports for convenient imports elsewhere in the app."""

from prodledger.models.base import Base
from prodledger.models.allocation_history import AllocationHistory
from prodledger.models.audit_log import AuditLog
from prodledger.models.employee import Employee
from prodledger.models.group_history import GroupHistory
from prodledger.models.inventory import Inventory
from prodledger.models.machine import Machine
from prodledger.models.production_group import ProductionGroup
from prodledger.models.production_schedule import ProductionSchedule
from prodledger.models.sequence import SequenceCounter
from prodledger.models.user import User
from prodledger.models.work_order import WorkOrder

__all__ = [
    "Base",
    "AllocationHistory",
    "AuditLog",
    "Employee",
    "GroupHistory",
    "Inventory",
    "Machine",
    "ProductionGroup",
    "ProductionSchedule",
    "SequenceCounter",
    "User",
    "WorkOrder",
]
