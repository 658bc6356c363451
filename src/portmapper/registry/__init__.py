from .client import OP_LIST, OP_REGISTER, OP_UNREGISTER, RetryingStoreClient
from .heartbeat import HeartbeatScheduler, SchedulerState
from .table import RegistrationEntry, RegistrationTable

__all__ = [
    "OP_LIST",
    "OP_REGISTER",
    "OP_UNREGISTER",
    "HeartbeatScheduler",
    "RegistrationEntry",
    "RegistrationTable",
    "RetryingStoreClient",
    "SchedulerState",
]
