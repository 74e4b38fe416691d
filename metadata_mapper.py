"""CSV metadata files and asset metadata updates.

Metadata files are two-column CSV with a ``Name,Value`` header::

    Name,Value
    Material,TPU
    Vendor,Non

Every row becomes one text field on the asset version.  The whole mapping
is sent in a single update so an asset never ends up with half of a file
applied.
"""

import csv
import io
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from api_client import ApiClient
from asset_api import (
    delete_metadata_keys,
    get_field_definition,
    register_field_definition,
    update_asset,
)
from errors import (
    DuplicateFieldError,
    MetadataParseError,
    NotFoundError,
    RequestRejectedError,
    UnknownFieldError,
)
from models.unity import AssetIdentity, FieldDefinition

logger = logging.getLogger("uamcli.metadata")

HEADER = ("Name", "Value")


def parse_metadata(text: str) -> Dict[str, str]:
    """Parse ``Name,Value`` CSV text into an ordered mapping.

    Surrounding whitespace is trimmed from every name and value, quoted or
    not, so ``" padded "`` is read as ``padded``.  Empty lines are skipped;
    a line of bare separators such as ``,,`` is a malformed row.

    Raises:
        MetadataParseError: Missing header or a row without two columns.
        DuplicateFieldError: A name appears on more than one row.
    """
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)
    records: Dict[str, str] = {}
    header_seen = False

    for row in reader:
        line = reader.line_num
        if not row or (len(row) == 1 and not row[0].strip()):
            continue
        cells = [cell.strip() for cell in row]

        if not header_seen:
            if [cell.lower() for cell in cells] != [h.lower() for h in HEADER]:
                raise MetadataParseError(
                    f"expected header 'Name,Value', got '{','.join(cells)}'", line
                )
            header_seen = True
            continue

        if len(cells) != 2:
            raise MetadataParseError(f"expected 2 columns, got {len(cells)}", line)
        name, value = cells
        if not name:
            raise MetadataParseError("empty field name", line)
        if name in records:
            raise DuplicateFieldError(name, line)
        records[name] = value

    if not header_seen:
        raise MetadataParseError("missing 'Name,Value' header", 1)
    return records


def load_metadata_file(path: Path) -> Dict[str, str]:
    """Read and parse a metadata CSV file.

    Raises:
        MetadataParseError: The file cannot be read or is malformed.
        DuplicateFieldError: A name appears on more than one row.
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise MetadataParseError(f"cannot read {path}: {exc.strerror or exc}") from exc
    records = parse_metadata(text)
    logger.info("Parsed %d metadata field(s) from %s", len(records), Path(path).name)
    return records


def format_metadata(records: Mapping[str, Any]) -> str:
    """Render a mapping as ``Name,Value`` CSV text.

    Values are written as given, but :func:`parse_metadata` trims
    surrounding whitespace, so leading or trailing spaces do not survive a
    write and read back.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for name, value in records.items():
        writer.writerow([name, "" if value is None else str(value)])
    return buffer.getvalue()


def _error_messages(body: Any) -> List[str]:
    """String values of an error body, keys excluded."""
    if body is None:
        return []
    if isinstance(body, str):
        return [body]
    if isinstance(body, Mapping):
        body = list(body.values())
    if isinstance(body, list):
        messages: List[str] = []
        for item in body:
            messages.extend(_error_messages(item))
        return messages
    return []


def _unknown_field(body: Any, names: Iterable[str]) -> Optional[str]:
    """First submitted field name quoted as a whole word in an error message."""
    messages = _error_messages(body)
    if not messages:
        return None
    for name in names:
        pattern = re.compile(r"(?<!\w)" + re.escape(name) + r"(?!\w)")
        if any(pattern.search(message) for message in messages):
            return name
    return None


def upload_metadata(
    client: ApiClient,
    identity: AssetIdentity,
    records: Mapping[str, str],
) -> None:
    """Set all ``records`` on an asset version in one update.

    Fields must already be registered in the organization; this never
    registers them.

    Raises:
        UnknownFieldError: The service rejected a field it does not know.
        ApiError: Any other failure.
    """
    if not records:
        logger.info("No metadata to upload")
        return

    logger.info(
        "Uploading %d metadata field(s) to asset %s", len(records), identity.id
    )
    try:
        update_asset(client, identity, {"metadata": dict(records)})
    except (RequestRejectedError, NotFoundError) as exc:
        name = _unknown_field(exc.body, records)
        if name is None:
            raise
        raise UnknownFieldError(name) from exc
    logger.info("Metadata uploaded")


def delete_metadata(client: ApiClient, identity: AssetIdentity, keys: Iterable[str]) -> List[str]:
    """Remove metadata fields from an asset version."""
    names = [key.strip() for key in keys if key.strip()]
    if not names:
        return []
    logger.info("Deleting metadata field(s) %s from asset %s", ", ".join(names), identity.id)
    delete_metadata_keys(client, identity, names)
    return names


def register_text_field(
    client: ApiClient,
    name: str,
    display_name: Optional[str] = None,
) -> FieldDefinition:
    """Register a text metadata field for the organization.

    Returns the existing definition unchanged when the field is already
    registered.
    """
    try:
        existing = get_field_definition(client, name)
    except NotFoundError:
        existing = None
    if existing is not None:
        logger.info("Field '%s' already registered (%s)", name, existing.type)
        return existing

    definition = FieldDefinition(name=name, displayName=display_name or name)
    register_field_definition(client, definition)
    logger.info("Registered text field '%s'", name)
    return definition
