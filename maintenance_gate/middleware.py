from django.conf import settings
from django.http import HttpResponse
from django.utils.deprecation import MiddlewareMixin

from maintenance_gate.backends import get_control_service_class
from maintenance_gate.builder import OptionsBuilder, validate_options
from maintenance_gate.environment import HostingEnvironment
from maintenance_gate.exceptions import MaintenanceConfigurationError
from maintenance_gate.logging import MaintenanceLogger
from maintenance_gate.matchers import get_matching_rule
from maintenance_gate.options import OptionKind
from maintenance_gate.response import resolve_response

structured_logger = MaintenanceLogger.get_logger(__name__)


class MaintenanceGateMiddleware(MiddlewareMixin):
    """
    Answers requests with a 503 while maintenance mode is on.

    Options are built from the ``MAINTENANCE_GATE`` setting and the
    maintenance response is resolved once, when Django creates the
    middleware, so configuration errors stop the process from starting.
    Must come after ``AuthenticationMiddleware`` for the user based bypass
    rules to see ``request.user``.
    """

    def __init__(self, get_response):
        super().__init__(get_response)

        self.environment = HostingEnvironment.from_settings()
        try:
            self.options = OptionsBuilder.from_settings(
                getattr(settings, "MAINTENANCE_GATE", None)
            ).build()
            validate_options(self.options, self.environment)
            self.maintenance_response = resolve_response(
                self.options, self.environment
            )
            service_class = get_control_service_class()
        except MaintenanceConfigurationError as exc:
            structured_logger.error(
                "Maintenance gate is misconfigured.",
                event_code="maintenance_gate_misconfigured",
                reason=str(exc),
                reason_code=type(exc).__name__,
            )
            raise

        self.retry_interval = self.options.get_value(
            OptionKind.CODE_503_RETRY_INTERVAL
        )

        # Restoring comes last: it may depend on everything above
        self.control_service = service_class(
            environment=self.environment, startup_options=self.options
        )
        self.can_override_options = self.control_service.can_override_options
        if self.control_service.can_restore_state:
            self.control_service.restore_state()

        structured_logger.info(
            "Maintenance gate ready.",
            event_code="maintenance_gate_ready",
            options=self.options,
            retry_interval=self.retry_interval,
            content_type=self.maintenance_response.content_type_header(),
            control_service=type(self.control_service).__name__,
        )

    def get_options(self):
        if self.can_override_options:
            return self.control_service.get_options_to_override()
        return self.options

    def process_request(self, request):
        if not self.control_service.is_maintenance_mode_on:
            return None

        options = self.get_options()
        if options is None:
            return None

        matching_rule = get_matching_rule(request, options)
        if matching_rule is not None:
            structured_logger.debug(
                "Request bypassed maintenance mode.",
                event_code="maintenance_bypassed",
                request=request,
                rule=str(matching_rule),
            )
            return None

        retry_interval = options.get_value(
            OptionKind.CODE_503_RETRY_INTERVAL, self.retry_interval
        )
        structured_logger.debug(
            "Serving maintenance response.",
            event_code="maintenance_response_served",
            request=request,
        )
        return self.get_maintenance_response(retry_interval)

    def get_maintenance_response(self, retry_interval):
        maintenance_response = self.maintenance_response
        response = HttpResponse(
            maintenance_response.content_bytes,
            content_type=maintenance_response.content_type_header(),
            status=503,
            charset=maintenance_response.encoding,
        )
        response["Retry-After"] = str(retry_interval)
        return response
