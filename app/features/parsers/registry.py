"""Format tag -> parser dispatch table."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from app.features.parsers.abc import parse_abc
from app.features.parsers.article import parse_article
from app.features.parsers.daily import parse_daily
from app.features.parsers.hourly import parse_hourly
from app.features.parsers.schemas import FileFormat, ParseResult
from app.features.parsers.zone import parse_zone

Parser = Callable[[Path], ParseResult[Any]]

PARSERS: dict[FileFormat, Parser] = {
    FileFormat.DAILY: parse_daily,
    FileFormat.ZONE: parse_zone,
    FileFormat.ARTICLE: parse_article,
    FileFormat.ABC: parse_abc,
    FileFormat.HOURLY: parse_hourly,
}


def get_parser(file_format: FileFormat) -> Parser | None:
    """Parser for ``file_format``, or None when the format has none."""
    return PARSERS.get(file_format)
