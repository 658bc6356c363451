from .service_record import HOST_ENV_VAR, MAX_PORT, MIN_PORT, ServiceRecord

__all__ = [
    "HOST_ENV_VAR",
    "MAX_PORT",
    "MIN_PORT",
    "ServiceRecord",
]
