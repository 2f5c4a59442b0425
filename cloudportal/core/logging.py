"""
Cloud Portal - Logging Infrastructure

This module provides structured logging with support for:
- JSON formatted logs for production
- Console formatted logs for development
- Context binding for request tracing
- Dedicated security and audit event loggers
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar, ParamSpec

import structlog
from structlog.types import Processor

from cloudportal.core.config import get_settings

# Context variables for request tracing
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
org_id_context: ContextVar[Optional[str]] = ContextVar("org_id", default=None)

P = ParamSpec("P")
R = TypeVar("R")


def add_context_variables(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Add context variables to log entries.

    This processor adds request_id and org_id from
    context variables to every log entry.
    """
    request_id = request_id_context.get()
    if request_id:
        event_dict["request_id"] = request_id

    org_id = org_id_context.get()
    if org_id:
        event_dict.setdefault("org_id", org_id)

    return event_dict


def get_log_level(settings: Any) -> int:
    """Convert string log level to logging constant."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(settings.LOG_LEVEL.upper(), logging.INFO)


def get_processors(settings: Any) -> list[Processor]:
    """Get structlog processors based on settings."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_variables,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    return processors


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    This should be called once at application startup.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=get_log_level(settings),
    )

    structlog.configure(
        processors=get_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name. If None, uses the calling module's name.

    Returns:
        A structlog BoundLogger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("wallet_topped_up", org_id="vodacom-id", amount="500.00")
    """
    return structlog.get_logger(name)


def log_execution_time(
    log: structlog.stdlib.BoundLogger,
    operation: str,
    **extra_fields: Any
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to log execution time of a function.

    Args:
        log: Logger instance
        operation: Name of the operation being timed
        **extra_fields: Additional fields to include in the log
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                duration_ms = (time.perf_counter() - start_time) * 1000
                log.info(
                    f"{operation}_completed",
                    duration_ms=round(duration_ms, 2),
                    success=True,
                    **extra_fields
                )
                return result
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log.error(
                    f"{operation}_failed",
                    duration_ms=round(duration_ms, 2),
                    success=False,
                    error=str(e),
                    error_type=type(e).__name__,
                    **extra_fields
                )
                raise
        return wrapper
    return decorator


class SecurityLogger:
    """
    Logger for security-relevant events.

    Every event is emitted under the ``security`` logger name so it can be
    routed to a SIEM separately from application logs.
    """

    def __init__(self) -> None:
        self.log = get_logger("security")

    def log_login_success(self, user_id: str, org_id: str, ip_address: str) -> None:
        self.log.info("login_success", user_id=user_id, org_id=org_id, ip_address=ip_address)

    def log_login_failure(self, email: str, ip_address: str, reason: str) -> None:
        self.log.warning("login_failure", email=email, ip_address=ip_address, reason=reason)

    def log_account_locked(self, user_id: str, org_id: str, ip_address: str) -> None:
        self.log.warning("account_locked", user_id=user_id, org_id=org_id, ip_address=ip_address)

    def log_token_refresh(self, user_id: str, org_id: str) -> None:
        self.log.info("token_refreshed", user_id=user_id, org_id=org_id)

    def log_token_invalid(self, reason: str, ip_address: str) -> None:
        self.log.warning("token_invalid", reason=reason, ip_address=ip_address)

    def log_logout(self, user_id: str, org_id: str) -> None:
        self.log.info("logout", user_id=user_id, org_id=org_id)

    def log_unauthorized_access(self, user_id: str, resource: str, action: str) -> None:
        self.log.warning("unauthorized_access", user_id=user_id, resource=resource, action=action)

    def log_tenant_isolation_violation(
        self,
        user_id: str,
        user_org: Optional[str],
        target_org: str,
        resource: str,
    ) -> None:
        self.log.error(
            "tenant_isolation_violation",
            user_id=user_id,
            user_org=user_org,
            target_org=target_org,
            resource=resource,
        )

    def log_rate_limit_exceeded(self, ip_address: str, endpoint: str) -> None:
        self.log.warning("rate_limit_exceeded", ip_address=ip_address, endpoint=endpoint)


class AuditLogger:
    """Logger for business changes that must be traceable to an actor."""

    def __init__(self) -> None:
        self.log = get_logger("audit")

    def log_customer_onboarded(self, actor_id: str, reseller_id: str, org_id: str) -> None:
        self.log.info("customer_onboarded", actor_id=actor_id, reseller_id=reseller_id, org_id=org_id)

    def log_wallet_transaction(
        self,
        actor_id: Optional[str],
        org_id: str,
        transaction_type: str,
        amount_cents: int,
        reference: str,
    ) -> None:
        self.log.info(
            "wallet_transaction",
            actor_id=actor_id,
            org_id=org_id,
            transaction_type=transaction_type,
            amount_cents=amount_cents,
            reference=reference,
        )

    def log_auto_topup_configured(self, actor_id: Optional[str], org_id: str, enabled: bool) -> None:
        self.log.info("auto_topup_configured", actor_id=actor_id, org_id=org_id, enabled=enabled)

    def log_month_end_reconciled(self, org_id: str, month: str, adjustment_cents: int) -> None:
        self.log.info("month_end_reconciled", org_id=org_id, month=month, adjustment_cents=adjustment_cents)


security_logger = SecurityLogger()
audit_logger = AuditLogger()
