import os
from typing import NamedTuple, Optional

from django.conf import settings


class HostingEnvironment(NamedTuple):
    web_root_path: Optional[str]
    content_root_path: Optional[str]

    @classmethod
    def from_settings(cls) -> "HostingEnvironment":
        """
        Build the environment from Django settings.

        The web root is ``MAINTENANCE_GATE["WEB_ROOT"]`` or ``STATIC_ROOT``.
        The content root is ``MAINTENANCE_GATE["CONTENT_ROOT"]`` or
        ``BASE_DIR``, falling back to the current working directory.
        """
        config = getattr(settings, "MAINTENANCE_GATE", None) or {}

        web_root = config.get("WEB_ROOT") or getattr(settings, "STATIC_ROOT", None)
        content_root = (
            config.get("CONTENT_ROOT")
            or getattr(settings, "BASE_DIR", None)
            or os.getcwd()
        )

        return cls(
            os.fspath(web_root) if web_root else None,
            os.fspath(content_root),
        )
