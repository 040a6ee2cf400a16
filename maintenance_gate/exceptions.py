from django.core.exceptions import ImproperlyConfigured


class MaintenanceConfigurationError(ImproperlyConfigured):
    """
    Raised while the middleware is being constructed when its options cannot
    produce a working maintenance response. These errors halt startup.
    """


class MissingOptionError(MaintenanceConfigurationError):
    def __init__(self, kind):
        super().__init__(f"No '{kind!s}' option has been configured.")
        self.kind = kind


# An unknown content type can only come from code, never from settings,
# so this is not a configuration error
class ContentTypeError(ValueError):
    pass
