from typing import Optional

from maintenance_gate.data import PathMatchMode
from maintenance_gate.options import OptionCollection, OptionKind


def path_starts_with_segments(path: str, prefix: str, match_mode: str) -> bool:
    """
    Whether ``path`` is ``prefix`` or lies below it.

    Matching is done on whole segments: ``/admin`` matches ``/admin`` and
    ``/admin/login/`` but not ``/administrator``.
    """
    prefix = prefix.rstrip("/")
    if match_mode == PathMatchMode.CASE_INSENSITIVE:
        path = path.casefold()
        prefix = prefix.casefold()

    if not path.startswith(prefix):
        return False
    return len(path) == len(prefix) or path[len(prefix)] == "/"


def _get_user(request):
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user


def _get_username(user) -> str:
    get_username = getattr(user, "get_username", None)
    if get_username is not None:
        return get_username()
    return getattr(user, "username", "")


def _user_has_role(user, role: str) -> bool:
    return user.groups.filter(name=role).exists()


def matches_url_path(request, options: OptionCollection) -> bool:
    return any(
        path_starts_with_segments(request.path, rule.prefix, rule.match_mode)
        for rule in options.values(OptionKind.BYPASS_URL_PATH)
    )


def matches_file_extension(request, options: OptionCollection) -> bool:
    path = request.path.lower()
    return any(
        path.endswith(f".{extension.lower()}")
        for extension in options.values(OptionKind.BYPASS_FILE_EXTENSION)
    )


def matches_authenticated_user(request, options: OptionCollection) -> bool:
    if not options.get_value(OptionKind.BYPASS_ALL_AUTHENTICATED_USERS, False):
        return False
    return _get_user(request) is not None


def matches_user_name(request, options: OptionCollection) -> bool:
    user_names = options.values(OptionKind.BYPASS_USER_NAME)
    if not user_names:
        return False

    user = _get_user(request)
    if user is None:
        return False
    return _get_username(user) in user_names


def matches_user_role(request, options: OptionCollection) -> bool:
    roles = options.values(OptionKind.BYPASS_USER_ROLE)
    if not roles:
        return False

    user = _get_user(request)
    if user is None:
        return False
    return any(_user_has_role(user, role) for role in roles)


# Cheap path checks come before the checks which may hit the database
BYPASS_RULES = (
    (OptionKind.BYPASS_URL_PATH, matches_url_path),
    (OptionKind.BYPASS_FILE_EXTENSION, matches_file_extension),
    (OptionKind.BYPASS_ALL_AUTHENTICATED_USERS, matches_authenticated_user),
    (OptionKind.BYPASS_USER_NAME, matches_user_name),
    (OptionKind.BYPASS_USER_ROLE, matches_user_role),
)


def get_matching_rule(request, options: OptionCollection) -> Optional[str]:
    """
    Return the kind of the first bypass rule matching ``request``, or
    ``None`` when the request should get the maintenance response.
    """
    for kind, matcher in BYPASS_RULES:
        if matcher(request, options):
            return kind
    return None


def should_bypass(request, options: OptionCollection) -> bool:
    return get_matching_rule(request, options) is not None
