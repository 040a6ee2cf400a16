def validate_retry_interval(seconds) -> int:
    """
    Validate a 503 retry interval.

    Behavior:
        - Accept integers and strings holding an integer.
        - Reject booleans, which are ints in Python but never a meaningful
          interval.
        - Require the value to be greater than zero.

    Args:
        seconds (int | str): Candidate number of seconds.

    Returns:
        int: The interval as an integer.

    Raises:
        ValueError: If the value is not an integer or is not positive.
    """
    if isinstance(seconds, bool):
        raise ValueError("Retry interval must be an integer number of seconds.")

    try:
        seconds = int(seconds)
    except (TypeError, ValueError):
        raise ValueError(
            "Retry interval must be an integer number of seconds."
        ) from None

    if seconds <= 0:
        raise ValueError("Retry interval must be greater than 0.")

    return seconds


def validate_non_empty(value, label: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string.")

    value = value.strip()
    if not value:
        raise ValueError(f"{label} must not be empty.")

    return value


def validate_url_path(prefix: str) -> str:
    prefix = validate_non_empty(prefix, "Bypass URL path")
    if not prefix.startswith("/"):
        raise ValueError(f"Bypass URL path {prefix!r} must start with '/'.")
    return prefix


def normalize_extension(extension: str) -> str:
    """
    Strip whitespace and a single leading dot, so ``.css`` and ``css`` are
    the same rule.
    """
    extension = validate_non_empty(extension, "Bypass file extension")
    if extension.startswith("."):
        extension = extension[1:]
    if not extension:
        raise ValueError("Bypass file extension must not be empty.")
    return extension
