"""
Import File Loader

Parses the plain-text import file of the scheduled task:

    # comment
    MailTo: bob@contoso.com, mike@contoso.com
    OU=Computers,OU=BEL,OU=EU,DC=contoso,DC=net
    OU=Computers,OU=NLD,OU=EU,DC=contoso,DC=net

Every non-comment line other than the MailTo directive is one organizational
unit to search, passed through to the directory query untouched.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from software_report.config import COMMENT_MARKER, MAIL_TO_DIRECTIVE
from software_report.exceptions import ConfigError
from software_report.logger import get_logger

logger = get_logger(__name__)

_MAIL_TO_PATTERN = re.compile(
    rf"^\s*{re.escape(MAIL_TO_DIRECTIVE)}\s*:(?P<value>.*)$", re.IGNORECASE
)


@dataclass(frozen=True)
class ImportFile:
    mail_to: Tuple[str, ...]
    ou_list: Tuple[str, ...]


def strip_comments(lines: Iterable[str], comment_marker: str = COMMENT_MARKER) -> List[str]:
    """
    Remove comment lines and blank lines, strip the remaining ones.

    Non-comment lines keep their original order, so applying this twice
    gives the same result as applying it once.
    """
    kept = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(comment_marker):
            continue
        kept.append(stripped)
    return kept


def _split_recipients(value: str) -> Tuple[str, ...]:
    return tuple(address.strip() for address in value.split(",") if address.strip())


def parse_import_file(lines: Iterable[str], comment_marker: str = COMMENT_MARKER) -> ImportFile:
    """
    Parse import file lines into recipients and OU identifiers.

    Args:
        lines: Raw text lines of the import file
        comment_marker: Prefix marking a comment line

    Returns:
        ImportFile with the MailTo recipients and the OU list in file order

    Raises:
        ConfigError: If MailTo is missing, empty or duplicated, or no OU remains
    """
    mail_to = None
    ou_list = []

    for line in strip_comments(lines, comment_marker):
        match = _MAIL_TO_PATTERN.match(line)
        if match:
            if mail_to is not None:
                raise ConfigError(f"Only one '{MAIL_TO_DIRECTIVE}' line is allowed in the import file")
            mail_to = _split_recipients(match.group("value"))
            continue
        ou_list.append(line)

    if mail_to is None:
        raise ConfigError(f"No '{MAIL_TO_DIRECTIVE}' found in the import file")

    if not mail_to:
        raise ConfigError(f"'{MAIL_TO_DIRECTIVE}' in the import file contains no e-mail address")

    if not ou_list:
        raise ConfigError("No organizational units found in the import file")

    return ImportFile(mail_to=mail_to, ou_list=tuple(ou_list))


def load_import_file(
    path: str,
    log: Optional[logging.Logger] = None,
) -> ImportFile:
    """
    Read and validate the import file at the given path.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    log = log or logger
    file_path = Path(path)

    if not file_path.is_file():
        raise ConfigError(f"Import file '{path}' not found")

    try:
        lines = file_path.read_text(encoding="utf-8-sig").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read import file '{path}': {str(e)}") from e

    import_file = parse_import_file(lines)
    log.info(f"Import file '{path}': {len(import_file.mail_to)} recipient(s), "
             f"{len(import_file.ou_list)} organizational unit(s)")
    return import_file
