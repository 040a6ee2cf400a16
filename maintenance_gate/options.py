import base64
from typing import Any, Iterable, NamedTuple, Optional

from django.db import models

from maintenance_gate.data import MaintenanceResponse, PathRule, ResponseFile
from maintenance_gate.exceptions import (
    MaintenanceConfigurationError,
    MissingOptionError,
)


class OptionKind(models.TextChoices):
    USE_DEFAULT_RESPONSE = "use_default_response", "Use default response"
    RESPONSE = "response", "Response"
    RESPONSE_FILE = "response_file", "Response file"
    CODE_503_RETRY_INTERVAL = "code_503_retry_interval", "503 retry interval"
    BYPASS_URL_PATH = "bypass_url_path", "Bypass URL path"
    BYPASS_FILE_EXTENSION = "bypass_file_extension", "Bypass file extension"
    BYPASS_ALL_AUTHENTICATED_USERS = (
        "bypass_all_authenticated_users",
        "Bypass all authenticated users",
    )
    BYPASS_USER_NAME = "bypass_user_name", "Bypass user name"
    BYPASS_USER_ROLE = "bypass_user_role", "Bypass user role"
    USE_NO_DEFAULT_VALUES = "use_no_default_values", "Use no default values"


MULTI_VALUED_KINDS = frozenset(
    {
        OptionKind.BYPASS_URL_PATH,
        OptionKind.BYPASS_FILE_EXTENSION,
        OptionKind.BYPASS_USER_NAME,
        OptionKind.BYPASS_USER_ROLE,
    }
)

RESPONSE_SOURCE_KINDS = (
    OptionKind.USE_DEFAULT_RESPONSE,
    OptionKind.RESPONSE,
    OptionKind.RESPONSE_FILE,
)

TRUE_STRINGS = ("1", "true", "yes", "on")


def _bool_from_string(value: str) -> bool:
    return value.strip().lower() in TRUE_STRINGS


def _response_to_string(response: MaintenanceResponse) -> str:
    encoded = base64.b64encode(response.content_bytes).decode("ascii")
    return f"{response.content_type!s};{response.encoding};{encoded}"


def _response_from_string(value: str) -> MaintenanceResponse:
    content_type, encoding, encoded = value.split(";", 2)
    return MaintenanceResponse(content_type, encoding, base64.b64decode(encoded))


def _response_file_from_string(value: str) -> ResponseFile:
    base_dir, path = value.split(";", 1)
    return ResponseFile(path, base_dir)


def _path_rule_from_string(value: str) -> PathRule:
    match_mode, prefix = value.split(";", 1)
    return PathRule(prefix, match_mode)


# kind -> (to_string, from_string)
CODECS = {
    OptionKind.USE_DEFAULT_RESPONSE: (str, _bool_from_string),
    OptionKind.RESPONSE: (_response_to_string, _response_from_string),
    OptionKind.RESPONSE_FILE: (
        lambda value: f"{value.base_dir!s};{value.path}",
        _response_file_from_string,
    ),
    OptionKind.CODE_503_RETRY_INTERVAL: (str, int),
    OptionKind.BYPASS_URL_PATH: (
        lambda value: f"{value.match_mode!s};{value.prefix}",
        _path_rule_from_string,
    ),
    OptionKind.BYPASS_FILE_EXTENSION: (str, str),
    OptionKind.BYPASS_ALL_AUTHENTICATED_USERS: (str, _bool_from_string),
    OptionKind.BYPASS_USER_NAME: (str, str),
    OptionKind.BYPASS_USER_ROLE: (str, str),
    OptionKind.USE_NO_DEFAULT_VALUES: (str, _bool_from_string),
}


class Option(NamedTuple):
    kind: str
    value: Any
    is_default: bool = False

    def to_string(self) -> str:
        to_string, _ = CODECS[self.kind]
        return to_string(self.value)

    @classmethod
    def from_string(cls, kind: str, value: str, is_default: bool = False) -> "Option":
        kind = OptionKind(kind)
        _, from_string = CODECS[kind]
        return cls(kind, from_string(value), is_default)


class OptionCollection:
    """
    An immutable, ordered collection of options.

    Multi-valued kinds (the bypass rules other than
    ``bypass_all_authenticated_users``) may appear any number of times; every
    other kind may appear at most once. Iteration follows insertion order.
    """

    def __init__(self, options: Iterable[Option] = ()):
        options = tuple(options)
        seen = set()
        for option in options:
            if option.kind in MULTI_VALUED_KINDS:
                continue
            if option.kind in seen:
                raise MaintenanceConfigurationError(
                    f"The '{option.kind!s}' option can only be configured once."
                )
            seen.add(option.kind)
        self._options = options

    def __iter__(self):
        return iter(self._options)

    def __len__(self):
        return len(self._options)

    def __eq__(self, other):
        if not isinstance(other, OptionCollection):
            return NotImplemented
        return self._options == other._options

    def __hash__(self):
        return hash(self._options)

    def __repr__(self):
        return f"<OptionCollection {[option.kind for option in self._options]}>"

    def get_all(self, kind: str) -> tuple[Option, ...]:
        return tuple(option for option in self._options if option.kind == kind)

    def values(self, kind: str) -> list[Any]:
        return [option.value for option in self.get_all(kind)]

    def any(self, kind: str) -> bool:
        return any(option.kind == kind for option in self._options)

    def get_single_or_default(self, kind: str) -> Optional[Option]:
        for option in self._options:
            if option.kind == kind:
                return option
        return None

    def get_single(self, kind: str) -> Option:
        option = self.get_single_or_default(kind)
        if option is None:
            raise MissingOptionError(kind)
        return option

    def get_value(self, kind: str, default: Any = None) -> Any:
        option = self.get_single_or_default(kind)
        if option is None:
            return default
        return option.value

    def with_options(self, *options: Option) -> "OptionCollection":
        return OptionCollection(self._options + options)

    def to_strings(self) -> list[dict[str, Any]]:
        """
        Serialize every option to a JSON-compatible dict using the string
        codec of its kind.
        """
        return [
            {
                "kind": str(option.kind),
                "value": option.to_string(),
                "is_default": option.is_default,
            }
            for option in self._options
        ]

    @classmethod
    def from_strings(cls, items: Iterable[dict[str, Any]]) -> "OptionCollection":
        return cls(
            Option.from_string(
                item["kind"], item["value"], is_default=item.get("is_default", False)
            )
            for item in items
        )
