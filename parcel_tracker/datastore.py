"""Durable JSON storage for the tracked package collection."""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

import voluptuous as vol

from .app.models import Carrier, Package, PackageStatus
from .const import KEY_PACKAGES
from .exceptions import CorruptStore, StorageError

_LOGGER = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _iso_datetime(value: Any) -> str:
    """Validate an ISO 8601 timestamp string."""
    if not isinstance(value, str):
        raise vol.Invalid("expected an ISO 8601 string")
    try:
        datetime.fromisoformat(value)
    except ValueError as err:
        raise vol.Invalid(f"invalid timestamp {value!r}") from err
    return value


EVENT_SCHEMA = vol.Schema(
    {
        vol.Required("timestamp"): _iso_datetime,
        vol.Optional("location"): vol.Any(None, str),
        vol.Optional("description", default=""): vol.Any(None, str),
        vol.Optional("raw_status"): vol.Any(None, str),
    }
)

PACKAGE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): vol.All(str, vol.Length(min=1)),
        vol.Optional("title"): vol.Any(None, str),
        vol.Optional("carrier", default=Carrier.UNKNOWN.value): vol.In([c.value for c in Carrier]),
        vol.Optional("status", default=PackageStatus.NEW.value): vol.In(
            [s.value for s in PackageStatus]
        ),
        vol.Optional("events", default=list): [EVENT_SCHEMA],
        vol.Optional("meta", default=dict): {str: str},
    }
)

STORE_SCHEMA = vol.Schema({vol.Required(KEY_PACKAGES): [PACKAGE_SCHEMA]})


def _decode(raw: str, path: Path) -> List[Package]:
    """Parse and validate a store document."""
    try:
        document = json.loads(raw)
    except ValueError as err:
        raise CorruptStore(f"{path} is not valid JSON: {err}") from err

    try:
        document = STORE_SCHEMA(document)
    except vol.Invalid as err:
        raise CorruptStore(f"{path} does not look like a package store: {err}") from err

    packages = [Package.from_dict(item) for item in document[KEY_PACKAGES]]
    seen = set()
    for package in packages:
        if package.tracking_number in seen:
            raise CorruptStore(f"{path} lists package {package.tracking_number} twice")
        seen.add(package.tracking_number)
    return packages


def _encode(packages: List[Package]) -> str:
    document: Dict[str, Any] = {KEY_PACKAGES: [package.to_dict() for package in packages]}
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def _fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives power loss."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def save(path: PathLike, packages: List[Package]) -> None:
    """Atomically replace the store at path with packages.

    The document is written to a temporary file beside the target and
    renamed over it, so readers only ever see the old or the new content.

    Raises:
        StorageError: On any I/O failure; the previous content is untouched
    """
    path = Path(path)
    payload = _encode(packages)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_name = handle.name
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
        _fsync_directory(path.parent)
    except OSError as err:
        raise StorageError(f"Could not write {path}: {err}") from err
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                _LOGGER.warning("Could not remove temporary file %s", tmp_name)
    _LOGGER.debug("Saved %d packages to %s", len(packages), path)


def load(path: PathLike) -> List[Package]:
    """Load the package collection stored at path.

    A missing file is created holding an empty collection.

    Raises:
        StorageError: The file exists but cannot be read
        CorruptStore: The file exists but is not a valid package store
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.info("No datastore at %s, creating an empty one", path)
        save(path, [])
        return []
    except UnicodeDecodeError as err:
        raise CorruptStore(f"{path} is not UTF-8 text: {err}") from err
    except OSError as err:
        raise StorageError(f"Could not read {path}: {err}") from err

    packages = _decode(raw, path)
    _LOGGER.debug("Loaded %d packages from %s", len(packages), path)
    return packages


class Datastore:
    """The package collection persisted at one path."""

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def load(self) -> List[Package]:
        return load(self.path)

    def save(self, packages: List[Package]) -> None:
        save(self.path, packages)

    def __repr__(self) -> str:
        return f"Datastore({str(self.path)!r})"
