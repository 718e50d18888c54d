"""Input validators."""

from depot.validators.path import PathResolver, normalize_relative_path, validate_entry_name

__all__ = ["PathResolver", "normalize_relative_path", "validate_entry_name"]
