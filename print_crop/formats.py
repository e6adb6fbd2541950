"""
Print-format catalog: lookup, load, save, and validate.

The catalog maps format names (and aliases, case-insensitively) to
``PrintFormat`` entries.  Unknown names resolve to the default format so an
export never stalls on a stale or misspelled assignment.

A user catalog may live in a JSON file in the config directory (provided
by ``config.config_dir()``).  If the file is missing or corrupt, it is
recreated from DEFAULT_FORMATS.  The on-disk format uses a versioned
envelope::

    {"version": 1, "formats": [ ... ]}
"""

import json
import logging
from copy import deepcopy
from pathlib import Path

from print_crop.config import DEFAULT_FORMATS, DEFAULT_FORMAT_NAME, config_dir
from print_crop.models import PrintFormat

logger = logging.getLogger(__name__)

_FORMATS_FILENAME = "formats.json"
_FORMAT_VERSION = 1

_REQUIRED_KEYS = {"name", "aspect_w", "aspect_h", "output_w", "output_h"}
_INT_KEYS = ("aspect_w", "aspect_h", "output_w", "output_h")


def _normalize_name(name: str) -> str:
    return name.strip().lower()


# =============================================================================
# Catalog
# =============================================================================
class FormatCatalog:
    """Name -> PrintFormat lookup with a default fallback."""

    def __init__(self, formats: list[PrintFormat], default_name: str = DEFAULT_FORMAT_NAME):
        self._formats = list(formats)
        self._by_name: dict[str, PrintFormat] = {}
        for fmt in self._formats:
            for name in (fmt.name, *fmt.aliases):
                self._by_name[_normalize_name(name)] = fmt
        key = _normalize_name(default_name)
        if key not in self._by_name:
            raise ValueError(f"default format {default_name!r} is not in the catalog")
        self._default = self._by_name[key]

    @classmethod
    def from_dicts(cls, data: list[dict], default_name: str = DEFAULT_FORMAT_NAME) -> "FormatCatalog":
        return cls([format_from_dict(d) for d in data], default_name)

    @classmethod
    def builtin(cls) -> "FormatCatalog":
        return cls.from_dicts(DEFAULT_FORMATS)

    @property
    def default(self) -> PrintFormat:
        return self._default

    def names(self) -> list[str]:
        return [fmt.name for fmt in self._formats]

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and _normalize_name(name) in self._by_name

    def get(self, name: str | None) -> PrintFormat:
        """Return the named format, or the default if the name is unknown."""
        if name is not None and name in self:
            return self._by_name[_normalize_name(name)]
        logger.warning("Unknown print format %r — using %s", name, self._default.name)
        return self._default


def format_from_dict(data: dict) -> PrintFormat:
    return PrintFormat(
        name=data["name"],
        aspect_w=data["aspect_w"],
        aspect_h=data["aspect_h"],
        output_w=data["output_w"],
        output_h=data["output_h"],
        aliases=tuple(data.get("aliases", ())),
    )


# =============================================================================
# Validation
# =============================================================================
def validate_formats(data: object, default_name: str = DEFAULT_FORMAT_NAME) -> list[str]:
    """
    Validate a formats data structure.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, list):
        errors.append("Formats data must be a list")
        return errors

    names_seen: dict[str, str] = {}  # normalized name/alias -> owning format

    for i, entry in enumerate(data):
        prefix = f"Format #{i + 1}"

        if not isinstance(entry, dict):
            errors.append(f"{prefix}: must be a dict")
            continue

        missing = _REQUIRED_KEYS - entry.keys()
        if missing:
            errors.append(f"{prefix}: missing keys: {', '.join(sorted(missing))}")
            continue

        name = entry.get("name", "")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"{prefix}: name must be a non-empty string")
            continue

        for key in _INT_KEYS:
            val = entry.get(key)
            # bool is an int subclass; reject it explicitly
            if not isinstance(val, int) or isinstance(val, bool) or val <= 0:
                errors.append(f"{prefix} ('{name}'): {key} must be a positive integer, got {val!r}")

        aliases = entry.get("aliases", [])
        if not isinstance(aliases, list) or not all(isinstance(a, str) and a.strip() for a in aliases):
            errors.append(f"{prefix} ('{name}'): aliases must be a list of non-empty strings")
            aliases = []

        # Names and aliases share one namespace
        for label in (name, *aliases):
            key = _normalize_name(label)
            if key in names_seen:
                errors.append(f"{prefix}: name '{label}' duplicates format '{names_seen[key]}'")
            else:
                names_seen[key] = name

    if not errors and _normalize_name(default_name) not in names_seen:
        errors.append(f"default format '{default_name}' is missing")

    return errors


# =============================================================================
# Load / Save
# =============================================================================
def _formats_path() -> Path:
    """Return the full path to formats.json."""
    return config_dir() / _FORMATS_FILENAME


def load_formats(path: Path | None = None) -> list[dict]:
    """
    Load formats from formats.json.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and returns them.
    """
    path = path or _formats_path()

    if not path.exists():
        logger.info("formats.json not found — creating with defaults at %s", path)
        _write_defaults(path)
        return deepcopy(DEFAULT_FORMATS)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read formats.json (%s) — restoring defaults", exc)
        _write_defaults(path)
        return deepcopy(DEFAULT_FORMATS)

    if not isinstance(raw, dict) or "version" not in raw or "formats" not in raw:
        logger.warning("formats.json missing version envelope — restoring defaults")
        _write_defaults(path)
        return deepcopy(DEFAULT_FORMATS)

    data = raw["formats"]
    errors = validate_formats(data)
    if errors:
        logger.warning(
            "formats.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        _write_defaults(path)
        return deepcopy(DEFAULT_FORMATS)

    return data


def load_catalog(path: Path | None = None) -> FormatCatalog:
    """Load the user catalog (or the defaults) as a FormatCatalog."""
    return FormatCatalog.from_dicts(load_formats(path))


def save_formats(formats: list[dict], path: Path | None = None) -> None:
    """
    Validate and write formats to formats.json in versioned envelope.

    Raises ValueError if validation fails.
    Raises OSError if the file cannot be written.
    """
    errors = validate_formats(formats)
    if errors:
        raise ValueError("Invalid formats data:\n  " + "\n  ".join(errors))

    envelope = {"version": _FORMAT_VERSION, "formats": formats}
    path = path or _formats_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved %d format(s) to %s", len(formats), path)


def _write_defaults(path: Path) -> None:
    """Write DEFAULT_FORMATS to the given path in versioned envelope."""
    try:
        envelope = {"version": _FORMAT_VERSION, "formats": deepcopy(DEFAULT_FORMATS)}
        path.write_text(
            json.dumps(envelope, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.error("Could not write default formats to %s: %s", path, exc)
