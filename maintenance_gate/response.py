import codecs
import os

from maintenance_gate.data import BaseDirectory, ContentType, MaintenanceResponse
from maintenance_gate.exceptions import MaintenanceConfigurationError
from maintenance_gate.options import RESPONSE_SOURCE_KINDS, OptionCollection, OptionKind

DEFAULT_RESPONSE_PATH = os.path.join(
    os.path.abspath(os.path.dirname(__file__)), "resources", "default_response.html"
)

# Longest marks first: the UTF-32 LE mark starts with the UTF-16 LE one.
# The codecs are the endian-specific ones so the mark stays part of the
# decoded text and re-encoding reproduces the original bytes.
BYTE_ORDER_MARKS = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

DEFAULT_FILE_ENCODING = "utf-8"


def detect_encoding(content: bytes) -> str:
    for mark, encoding in BYTE_ORDER_MARKS:
        if content.startswith(mark):
            return encoding
    return DEFAULT_FILE_ENCODING


def configured_response_sources(options: OptionCollection) -> list:
    """
    Return the response source kinds present in ``options``.

    A ``use_default_response`` option holding ``False`` is not a source.
    """
    sources = []
    for kind in RESPONSE_SOURCE_KINDS:
        if kind == OptionKind.USE_DEFAULT_RESPONSE:
            if options.get_value(kind, False):
                sources.append(kind)
        elif options.any(kind):
            sources.append(kind)
    return sources


def get_response_file_path(response_file, environment) -> str:
    if response_file.base_dir == BaseDirectory.WEB_ROOT:
        base_path = environment.web_root_path
    elif response_file.base_dir == BaseDirectory.CONTENT_ROOT:
        base_path = environment.content_root_path
    else:
        return os.path.abspath(response_file.path)

    if not base_path:
        raise MaintenanceConfigurationError(
            f"Cannot resolve the response file {response_file.path!r}: the "
            f"{response_file.base_dir!s} path of the hosting environment is not set."
        )
    return os.path.abspath(os.path.join(base_path, response_file.path))


def verify_response_source(options: OptionCollection, environment) -> None:
    """
    Fail fast on a missing or ambiguous response source, and on a response
    file which does not exist.
    """
    sources = configured_response_sources(options)
    if not sources:
        raise MaintenanceConfigurationError("No maintenance response was specified.")
    if len(sources) > 1:
        raise MaintenanceConfigurationError(
            "Only one maintenance response can be specified, found: "
            f"{', '.join(sources)}."
        )

    if sources[0] == OptionKind.RESPONSE_FILE:
        response_file = options.get_value(OptionKind.RESPONSE_FILE)
        full_path = get_response_file_path(response_file, environment)
        if not os.path.isfile(full_path):
            raise MaintenanceConfigurationError(
                f"Could not find the maintenance response file at "
                f"{response_file.path!r} (resolved to {full_path!r})."
            )


def check_response_decodes(response: MaintenanceResponse, source: str) -> None:
    """
    Raise if the bytes of ``response`` are not valid in its encoding.
    """
    try:
        response.get_text()
    except UnicodeDecodeError as exc:
        raise MaintenanceConfigurationError(
            f"The maintenance response from {source} is not valid "
            f"{response.encoding!r} text: {exc.reason} at byte {exc.start}. Save it "
            f"as UTF-8 or start it with a byte order mark."
        ) from exc


def load_default_response() -> MaintenanceResponse:
    try:
        with open(DEFAULT_RESPONSE_PATH, "rb") as f:
            content = f.read()
    except FileNotFoundError:
        raise MaintenanceConfigurationError(
            f"The default maintenance response is missing from the package "
            f"(expected at {DEFAULT_RESPONSE_PATH!r})."
        ) from None

    return MaintenanceResponse(ContentType.HTML, "utf-8", content)


def load_response_file(response_file, environment) -> MaintenanceResponse:
    full_path = get_response_file_path(response_file, environment)
    with open(full_path, "rb") as f:
        content = f.read()

    if full_path.lower().endswith(".txt"):
        content_type = ContentType.TEXT
    else:
        content_type = ContentType.HTML

    return MaintenanceResponse(content_type, detect_encoding(content), content)


def resolve_response(options: OptionCollection, environment) -> MaintenanceResponse:
    """
    Produce the maintenance response from the single configured source.

    Sources are checked in this order: the bundled default document, an
    explicit response, a response file. Files are read here and nowhere else,
    so callers are expected to resolve once and keep the result.

    Raises:
        MaintenanceConfigurationError: If no source is configured, the
            bundled default document is missing, or the content does not
            decode with its encoding.
    """
    if options.get_value(OptionKind.USE_DEFAULT_RESPONSE, False):
        return load_default_response()

    response = options.get_value(OptionKind.RESPONSE)
    if response is not None:
        check_response_decodes(response, "the RESPONSE option")
        return response

    response_file = options.get_value(OptionKind.RESPONSE_FILE)
    if response_file is not None:
        response = load_response_file(response_file, environment)
        check_response_decodes(
            response,
            f"{get_response_file_path(response_file, environment)!r}",
        )
        return response

    raise MaintenanceConfigurationError("No maintenance response was specified.")
