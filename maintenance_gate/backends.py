import json
import os
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.utils.module_loading import import_string
from maintenance_mode.core import get_maintenance_mode

from maintenance_gate.exceptions import MaintenanceConfigurationError
from maintenance_gate.logging import MaintenanceLogger
from maintenance_gate.options import OptionCollection

structured_logger = MaintenanceLogger.get_logger(__name__)

DEFAULT_CONTROL_SERVICE = "maintenance_gate.backends.MaintenanceModeControlService"

STATE_CACHE_KEY = "maintenance_gate_state"


class MaintenanceControlService:
    """
    Owner of the maintenance mode switch.

    Subclasses must implement ``is_maintenance_mode_on``. The optional
    capabilities are declared with class attributes, which the middleware
    reads once when it is constructed:

    - ``can_override_options``: ``get_options_to_override()`` is called on
      every request while maintenance mode is on. Returning ``None`` lets the
      request through.
    - ``can_restore_state``: ``restore_state()`` is called once at startup.
    """

    can_override_options = False
    can_restore_state = False

    def __init__(self, environment=None, startup_options=None):
        self.environment = environment
        self.startup_options = startup_options

    @property
    def is_maintenance_mode_on(self) -> bool:
        raise NotImplementedError

    def get_options_to_override(self) -> Optional[OptionCollection]:
        raise NotImplementedError

    def restore_state(self) -> None:
        raise NotImplementedError


class MaintenanceModeControlService(MaintenanceControlService):
    """
    Reads the switch from django-maintenance-mode, so its state backends,
    views and ``maintenance_mode`` management command control the gate.
    """

    @property
    def is_maintenance_mode_on(self) -> bool:
        return get_maintenance_mode()


class CacheControlService(MaintenanceControlService):
    """
    Keeps the maintenance state in the default Django cache.

    Maintenance mode can be entered with its own options and an optional
    expiration time. When ``MAINTENANCE_GATE["STATE_FILE"]`` is set, every
    change is also written to that JSON file (relative paths are resolved
    against the content root) and read back by ``restore_state()`` when the
    process starts.
    """

    can_override_options = True
    can_restore_state = True

    def _get_state(self) -> dict:
        return cache.get(STATE_CACHE_KEY) or {}

    def _set_state(self, state: dict) -> None:
        cache.set(STATE_CACHE_KEY, state, None)
        state_file = self.get_state_file_path()
        if state_file:
            with open(state_file, "w", encoding="utf-8") as f:
                json.dump(state, f)

    def get_state_file_path(self) -> Optional[str]:
        config = getattr(settings, "MAINTENANCE_GATE", None) or {}
        state_file = config.get("STATE_FILE")
        if not state_file:
            return None

        content_root = getattr(self.environment, "content_root_path", None)
        if content_root:
            return os.path.join(content_root, state_file)
        return os.path.abspath(state_file)

    def _get_expiration(self, state: dict):
        expiration = state.get("expiration")
        if expiration:
            return parse_datetime(expiration)
        return None

    def _has_expired(self, state: dict) -> bool:
        expiration = self._get_expiration(state)
        return expiration is not None and expiration <= timezone.now()

    @property
    def is_maintenance_mode_on(self) -> bool:
        return bool(self._get_state().get("is_on", False))

    def enter_maintenance(self, expiration=None, options=None) -> None:
        """
        Turn maintenance mode on.

        Args:
            expiration (datetime, optional): After this moment requests are
                let through again, until ``leave_maintenance()`` is called.
            options (OptionCollection, optional): Options used instead of the
                startup options while this state lasts.
        """
        state = {"is_on": True}
        if expiration is not None:
            state["expiration"] = expiration.isoformat()
        if options is not None:
            state["options"] = options.to_strings()
        self._set_state(state)

        structured_logger.info(
            "Maintenance mode turned on.",
            event_code="maintenance_mode_on",
            expiration=state.get("expiration"),
            options=options,
        )

    def leave_maintenance(self) -> None:
        self._set_state({"is_on": False})
        structured_logger.info(
            "Maintenance mode turned off.", event_code="maintenance_mode_off"
        )

    def get_options_to_override(self) -> Optional[OptionCollection]:
        state = self._get_state()
        if self._has_expired(state):
            return None

        stored_options = state.get("options")
        if stored_options is not None:
            return OptionCollection.from_strings(stored_options)
        return self.startup_options

    def restore_state(self) -> None:
        state_file = self.get_state_file_path()
        if not state_file or not os.path.exists(state_file):
            return

        try:
            with open(state_file, encoding="utf-8") as f:
                state = json.load(f)
            if not isinstance(state, dict):
                raise ValueError("The state file does not hold a JSON object.")
        except (OSError, ValueError) as exc:
            structured_logger.warning(
                "Maintenance state could not be restored.",
                event_code="maintenance_state_restore_failed",
                reason=str(exc),
                reason_code=type(exc).__name__,
                state_file=state_file,
            )
            return

        cache.set(STATE_CACHE_KEY, state, None)
        structured_logger.info(
            "Maintenance state restored.",
            event_code="maintenance_state_restored",
            is_on=state.get("is_on", False),
            state_file=state_file,
        )


def get_control_service_class(path: Optional[str] = None):
    if path is None:
        config = getattr(settings, "MAINTENANCE_GATE", None) or {}
        path = config.get("CONTROL_SERVICE", DEFAULT_CONTROL_SERVICE)

    try:
        return import_string(path)
    except ImportError as exc:
        raise MaintenanceConfigurationError(
            f"Could not import the maintenance control service {path!r}: {exc}"
        ) from exc
