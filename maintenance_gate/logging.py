from typing import Any, Callable, Optional

import structlog

LEVELS_REQUIRING_REASON = ("warning", "error")


def get_user_id(user: Any) -> str:
    """
    Identifier of ``user`` for log output: the primary key of an
    authenticated user, "anonymous" for everyone else.
    """
    if not getattr(user, "is_authenticated", False):
        return "anonymous"

    user_id = getattr(user, "pk", None)
    if user_id is None:
        return "anonymous"
    return str(user_id)


def _request_fields(request) -> dict[str, Any]:
    return {
        "user_id": get_user_id(getattr(request, "user", None)),
        "path": getattr(request, "path", None),
        "method": getattr(request, "method", None),
    }


def _options_fields(options) -> dict[str, Any]:
    return {
        "option_count": len(options),
        "option_kinds": sorted({str(option.kind) for option in options}),
    }


# Keyword arguments which are expanded into plain fields instead of being
# passed to structlog as objects
CONTEXT_EXPANDERS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "user": lambda user: {"user_id": get_user_id(user)},
    "request": _request_fields,
    "options": _options_fields,
}


class MaintenanceLogger:
    """
    structlog wrapper used by every module of the maintenance gate.

    Each call needs a message and an ``event_code``; warnings and errors also
    need ``reason`` and ``reason_code``. The ``user``, ``request`` and
    ``options`` keyword arguments are expanded into fields (``user_id``,
    ``path``, ``method``, ``option_count``, ``option_kinds``). Explicit keyword
    arguments win over expanded ones and ``None`` values are dropped.

    Usage::

        structured_logger = MaintenanceLogger.get_logger(__name__)
        structured_logger.debug(
            "Serving maintenance response.",
            event_code="maintenance_response_served",
            request=request,
        )
    """

    def __init__(self, logger, context: Optional[dict[str, Any]] = None):
        self._logger = logger
        self._context = context or {}

    @classmethod
    def get_logger(cls, name: str) -> "MaintenanceLogger":
        return cls(structlog.get_logger(f"structlog.{name}"))

    def bind(self, **kwargs: Any) -> "MaintenanceLogger":
        """
        Return a logger which adds ``kwargs`` to every event it logs.
        """
        return MaintenanceLogger(self._logger, context={**self._context, **kwargs})

    def _build_fields(self, context: dict[str, Any]) -> dict[str, Any]:
        merged = {**self._context, **context}

        fields = {}
        for key, expand in CONTEXT_EXPANDERS.items():
            context_object = merged.pop(key, None)
            if context_object is not None:
                fields.update(expand(context_object))
        fields.update(merged)

        return {key: value for key, value in fields.items() if value is not None}

    def log(
        self,
        level: str,
        message: str,
        *,
        event_code: str,
        reason: Optional[str] = None,
        reason_code: Optional[str] = None,
        **context: Any,
    ) -> None:
        """
        Raises:
            ValueError: If the message or ``event_code`` is empty, or a
                warning or error comes without ``reason`` and ``reason_code``.
        """
        if not message:
            raise ValueError("Log message is required.")
        if not event_code:
            raise ValueError("Structured logs must include an 'event_code' field.")
        if level in LEVELS_REQUIRING_REASON and not (reason and reason_code):
            raise ValueError(
                "Warnings and errors must include both 'reason' and 'reason_code'."
            )

        fields = self._build_fields(context)
        fields.update(event_code=event_code, reason=reason, reason_code=reason_code)
        fields = {key: value for key, value in fields.items() if value is not None}

        getattr(self._logger, level)(message, **fields)

    def debug(self, message: str, *, event_code: str, **kwargs):
        self.log("debug", message, event_code=event_code, **kwargs)

    def info(self, message: str, *, event_code: str, **kwargs):
        self.log("info", message, event_code=event_code, **kwargs)

    def warning(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        self.log(
            "warning",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )

    def error(
        self, message: str, *, event_code: str, reason: str, reason_code: str, **kwargs
    ):
        self.log(
            "error",
            message,
            event_code=event_code,
            reason=reason,
            reason_code=reason_code,
            **kwargs,
        )
