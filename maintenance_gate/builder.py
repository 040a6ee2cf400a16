import codecs
from typing import Any, Iterable, Mapping, Optional

from django.utils.module_loading import import_string

from maintenance_gate.data import (
    BaseDirectory,
    ContentType,
    MaintenanceResponse,
    PathMatchMode,
    PathRule,
    ResponseFile,
)
from maintenance_gate.exceptions import MaintenanceConfigurationError
from maintenance_gate.options import (
    MULTI_VALUED_KINDS,
    RESPONSE_SOURCE_KINDS,
    Option,
    OptionCollection,
    OptionKind,
)
from maintenance_gate.response import configured_response_sources, verify_response_source
from maintenance_gate.validation import (
    normalize_extension,
    validate_non_empty,
    validate_retry_interval,
    validate_url_path,
)

DEFAULT_RETRY_INTERVAL = 5300
DEFAULT_BYPASS_URL_PATH = PathRule("/admin", PathMatchMode.CASE_INSENSITIVE)

# Keys of the MAINTENANCE_GATE setting which are not option directives
ENVIRONMENT_SETTINGS = ("CONTROL_SERVICE", "WEB_ROOT", "CONTENT_ROOT", "STATE_FILE")


def _choice(value, choices, label):
    if value not in choices.values:
        raise ValueError(
            f"{label} must be one of {', '.join(choices.values)}, not {value!r}."
        )
    return choices(value).value


class OptionsBuilder:
    """
    Collects option directives and produces an ``OptionCollection``.

    Every directive validates its arguments and returns the builder, so calls
    can be chained::

        options = (
            OptionsBuilder()
            .use_response_file("maintenance.html", BaseDirectory.CONTENT_ROOT)
            .set_code_503_retry_interval(120)
            .bypass_user_roles(["Operators"])
            .build()
        )
    """

    def __init__(self):
        self._options = []

    def _add(self, kind, value) -> "OptionsBuilder":
        if kind in RESPONSE_SOURCE_KINDS:
            for option in self._options:
                if option.kind in RESPONSE_SOURCE_KINDS:
                    raise MaintenanceConfigurationError(
                        f"Cannot use '{kind!s}': a response has already been "
                        f"specified with '{option.kind!s}'."
                    )
        if kind not in MULTI_VALUED_KINDS:
            for option in self._options:
                if option.kind == kind:
                    raise MaintenanceConfigurationError(
                        f"The '{kind!s}' option can only be configured once."
                    )

        self._options.append(Option(kind, value))
        return self

    def use_default_response(self) -> "OptionsBuilder":
        return self._add(OptionKind.USE_DEFAULT_RESPONSE, True)

    def use_response(
        self,
        content,
        content_type: str = ContentType.HTML,
        encoding: str = "utf-8",
    ) -> "OptionsBuilder":
        content_type = _choice(content_type, ContentType, "Response content type")
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise ValueError(f"Unknown response encoding {encoding!r}.") from None

        if isinstance(content, str):
            content = content.encode(encoding)
        elif isinstance(content, bytes):
            try:
                content.decode(encoding)
            except UnicodeDecodeError as exc:
                raise ValueError(
                    f"Response content is not valid {encoding!r} text: {exc.reason} "
                    f"at byte {exc.start}."
                ) from None
        else:
            raise ValueError("Response content must be str or bytes.")

        return self._add(
            OptionKind.RESPONSE, MaintenanceResponse(content_type, encoding, content)
        )

    def use_response_file(
        self, path: str, base_dir: str = BaseDirectory.NONE
    ) -> "OptionsBuilder":
        path = validate_non_empty(path, "Response file path")
        base_dir = _choice(base_dir, BaseDirectory, "Response file base directory")
        return self._add(OptionKind.RESPONSE_FILE, ResponseFile(path, base_dir))

    def set_code_503_retry_interval(self, seconds: int) -> "OptionsBuilder":
        return self._add(
            OptionKind.CODE_503_RETRY_INTERVAL, validate_retry_interval(seconds)
        )

    def bypass_url_path(
        self, prefix: str, match_mode: str = PathMatchMode.CASE_INSENSITIVE
    ) -> "OptionsBuilder":
        match_mode = _choice(match_mode, PathMatchMode, "Path match mode")
        return self._add(
            OptionKind.BYPASS_URL_PATH, PathRule(validate_url_path(prefix), match_mode)
        )

    def bypass_url_paths(
        self,
        prefixes: Iterable[str],
        match_mode: str = PathMatchMode.CASE_INSENSITIVE,
    ) -> "OptionsBuilder":
        if isinstance(prefixes, str):
            prefixes = [prefixes]
        for prefix in prefixes:
            self.bypass_url_path(prefix, match_mode)
        return self

    def bypass_file_extension(self, extension: str) -> "OptionsBuilder":
        return self._add(
            OptionKind.BYPASS_FILE_EXTENSION, normalize_extension(extension)
        )

    def bypass_file_extensions(self, extensions: Iterable[str]) -> "OptionsBuilder":
        if isinstance(extensions, str):
            extensions = [extensions]
        for extension in extensions:
            self.bypass_file_extension(extension)
        return self

    def bypass_all_authenticated_users(self, value: bool = True) -> "OptionsBuilder":
        return self._add(OptionKind.BYPASS_ALL_AUTHENTICATED_USERS, bool(value))

    def bypass_user_name(self, user_name: str) -> "OptionsBuilder":
        return self._add(
            OptionKind.BYPASS_USER_NAME, validate_non_empty(user_name, "User name")
        )

    def bypass_user_names(self, user_names: Iterable[str]) -> "OptionsBuilder":
        if isinstance(user_names, str):
            user_names = [user_names]
        for user_name in user_names:
            self.bypass_user_name(user_name)
        return self

    def bypass_user_role(self, role: str) -> "OptionsBuilder":
        return self._add(OptionKind.BYPASS_USER_ROLE, validate_non_empty(role, "Role"))

    def bypass_user_roles(self, roles: Iterable[str]) -> "OptionsBuilder":
        if isinstance(roles, str):
            roles = [roles]
        for role in roles:
            self.bypass_user_role(role)
        return self

    def use_no_default_values(self) -> "OptionsBuilder":
        return self._add(OptionKind.USE_NO_DEFAULT_VALUES, True)

    def get_explicit_options(self) -> OptionCollection:
        return OptionCollection(self._options)

    def build(self) -> OptionCollection:
        return apply_defaults(self.get_explicit_options())

    @classmethod
    def from_settings(cls, config: Optional[Mapping[str, Any]]) -> "OptionsBuilder":
        """
        Create a builder from the ``MAINTENANCE_GATE`` setting.

        Raises:
            MaintenanceConfigurationError: If a key is unknown or a value is
                invalid.
        """
        builder = cls()
        config = dict(config or {})

        for key in ENVIRONMENT_SETTINGS:
            config.pop(key, None)
        configure = config.pop("CONFIGURE", None)

        try:
            for key, value in config.items():
                try:
                    handler = SETTINGS_DIRECTIVES[key]
                except KeyError:
                    raise MaintenanceConfigurationError(
                        f"Unknown MAINTENANCE_GATE setting {key!r}."
                    ) from None
                handler(builder, value)
        except (ValueError, TypeError) as exc:
            raise MaintenanceConfigurationError(
                f"Invalid MAINTENANCE_GATE setting {key!r}: {exc}"
            ) from exc

        if configure:
            if isinstance(configure, str):
                try:
                    configure = import_string(configure)
                except ImportError as exc:
                    raise MaintenanceConfigurationError(
                        f"Could not import MAINTENANCE_GATE CONFIGURE callable "
                        f"{configure!r}: {exc}"
                    ) from exc
            configure(builder)

        return builder


def _set_response(builder, value):
    if isinstance(value, Mapping):
        builder.use_response(
            value["content"],
            value.get("content_type", ContentType.HTML),
            value.get("encoding", "utf-8"),
        )
    else:
        builder.use_response(value)


def _set_response_file(builder, value):
    if isinstance(value, Mapping):
        builder.use_response_file(
            value["path"], value.get("base_dir", BaseDirectory.NONE)
        )
    else:
        builder.use_response_file(value)


def _set_url_paths(builder, value):
    if isinstance(value, str):
        value = [value]
    for rule in value:
        if isinstance(rule, str):
            builder.bypass_url_path(rule)
        else:
            builder.bypass_url_path(*rule)


def _if_true(directive):
    def handler(builder, value):
        if value:
            directive(builder)

    return handler


SETTINGS_DIRECTIVES = {
    "USE_DEFAULT_RESPONSE": _if_true(OptionsBuilder.use_default_response),
    "RESPONSE": _set_response,
    "RESPONSE_FILE": _set_response_file,
    "RETRY_INTERVAL": OptionsBuilder.set_code_503_retry_interval,
    "BYPASS_URL_PATHS": _set_url_paths,
    "BYPASS_FILE_EXTENSIONS": OptionsBuilder.bypass_file_extensions,
    "BYPASS_ALL_AUTHENTICATED_USERS": OptionsBuilder.bypass_all_authenticated_users,
    "BYPASS_USER_NAMES": OptionsBuilder.bypass_user_names,
    "BYPASS_USER_ROLES": OptionsBuilder.bypass_user_roles,
    "USE_NO_DEFAULT_VALUES": _if_true(OptionsBuilder.use_no_default_values),
}


def apply_defaults(options: OptionCollection) -> OptionCollection:
    """
    Return a new collection with unset kinds filled with their defaults.

    Nothing is added when ``use_no_default_values`` is set. Added options are
    marked with ``is_default=True``.
    """
    if options.get_value(OptionKind.USE_NO_DEFAULT_VALUES, False):
        return options

    defaults = []
    if not configured_response_sources(options):
        defaults.append(Option(OptionKind.USE_DEFAULT_RESPONSE, True, True))
    if not options.any(OptionKind.CODE_503_RETRY_INTERVAL):
        defaults.append(
            Option(OptionKind.CODE_503_RETRY_INTERVAL, DEFAULT_RETRY_INTERVAL, True)
        )
    if not options.any(OptionKind.BYPASS_URL_PATH):
        defaults.append(Option(OptionKind.BYPASS_URL_PATH, DEFAULT_BYPASS_URL_PATH, True))

    return options.with_options(*defaults)


def validate_options(options: OptionCollection, environment) -> None:
    """
    Check that a collection can drive the middleware.

    Raises:
        MaintenanceConfigurationError: If the response source is missing,
            ambiguous or points at a missing file.
        MissingOptionError: If no retry interval is configured.
    """
    verify_response_source(options, environment)
    options.get_single(OptionKind.CODE_503_RETRY_INTERVAL)
