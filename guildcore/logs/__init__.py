from .logging_config import (
    ContextLogger,
    get_core_logger,
    get_tenant_logger,
    log_operation,
    reset_logging_state,
    setup_logging,
    setup_logging_from_settings,
)

__all__ = [
    "ContextLogger",
    "get_core_logger",
    "get_tenant_logger",
    "log_operation",
    "reset_logging_state",
    "setup_logging",
    "setup_logging_from_settings",
]
