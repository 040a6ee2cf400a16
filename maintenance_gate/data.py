from typing import NamedTuple

from django.db import models

from maintenance_gate.exceptions import ContentTypeError


class ContentType(models.TextChoices):
    HTML = "html", "text/html"
    TEXT = "text", "text/plain"
    JSON = "json", "application/json"


class PathMatchMode(models.TextChoices):
    CASE_SENSITIVE = "case_sensitive", "Case sensitive"
    CASE_INSENSITIVE = "case_insensitive", "Case insensitive"


class BaseDirectory(models.TextChoices):
    WEB_ROOT = "web_root", "Web root"
    CONTENT_ROOT = "content_root", "Content root"
    NONE = "none", "None"


class MaintenanceResponse(NamedTuple):
    content_type: str
    encoding: str
    content_bytes: bytes

    def content_type_header(self) -> str:
        try:
            return ContentType(self.content_type).label
        except ValueError:
            raise ContentTypeError(
                f"Content type {self.content_type!r} could not be translated."
            ) from None

    def get_text(self) -> str:
        return self.content_bytes.decode(self.encoding)


class ResponseFile(NamedTuple):
    path: str
    base_dir: str = BaseDirectory.NONE


class PathRule(NamedTuple):
    prefix: str
    match_mode: str = PathMatchMode.CASE_INSENSITIVE
