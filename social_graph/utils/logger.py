import logging
import contextvars
from typing import Optional

# Context variables carrying the acting user and the facade operation
actor_context = contextvars.ContextVar('actor', default=None)
operation_context = contextvars.ContextVar('operation', default=None)


class ActorAwareFormatter(logging.Formatter):
    """
    Formatter that stamps the acting user and operation onto each record.

    Records logged outside of a facade operation get placeholder values so
    format strings referencing %(actor)s / %(operation)s never fail.
    """

    def format(self, record: logging.LogRecord) -> str:
        if not getattr(record, 'actor', None):
            record.actor = actor_context.get() or "anonymous"
        if not getattr(record, 'operation', None):
            record.operation = operation_context.get() or "-"
        return super().format(record)


class ActorAwareLogger:
    """
    A logger wrapper that adds the current actor/operation to ``extra``.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name

    def _log_with_context(self, level: int, msg: str, *args, **kwargs):
        actor = kwargs.pop('actor', None) or actor_context.get()
        operation = operation_context.get()

        extra = kwargs.get('extra', {})
        if actor:
            extra['actor'] = actor
        if operation:
            extra['operation'] = operation
        if extra:
            kwargs['extra'] = extra

        self.logger.log(level, msg, *args, **kwargs)

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def debug(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        self._log_with_context(logging.ERROR, msg, *args, **kwargs, exc_info=True)


def get_logger(name: str) -> ActorAwareLogger:
    """
    Get an actor-aware logger for the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        ActorAwareLogger: A logger that automatically includes the acting user
    """
    return ActorAwareLogger(name)


def set_operation_context(actor: Optional[str], operation: str):
    """Bind the acting user and operation name for the current task."""
    return actor_context.set(actor), operation_context.set(operation)


def clear_operation_context(tokens=None):
    """Restore the context saved by set_operation_context (or blank it)."""
    if tokens:
        actor_token, operation_token = tokens
        actor_context.reset(actor_token)
        operation_context.reset(operation_token)
        return
    actor_context.set(None)
    operation_context.set(None)
