"""Global xdebug-trace configuration."""

from __future__ import annotations

from typing import Any


_config: dict[str, Any] = {
    "line_length": 4096,        # longer lines are truncated
    "placeholder": "",          # content written before tracing starts
    "framework_prefixes": ("Nette\\",),
    "own_prefixes": ("Panel\\XDebugTrace::", "Panel\\XDebugTrace->"),
    "own_files": (),            # source files of the tracing panel itself
}


def configure(
    line_length: int | None = None,
    placeholder: str | None = None,
    framework_prefixes: tuple[str, ...] | list[str] | None = None,
    own_prefixes: tuple[str, ...] | list[str] | None = None,
    own_files: tuple[str, ...] | list[str] | None = None,
) -> None:
    """
    Set global xdebug-trace configuration.

    Configuration is global and set once at startup. Engine constructor
    arguments take precedence over global defaults.
    """
    if line_length is not None:
        if line_length < 2:
            raise ValueError("line_length must be at least 2")
        _config["line_length"] = line_length
    if placeholder is not None:
        _config["placeholder"] = placeholder
    if framework_prefixes is not None:
        _config["framework_prefixes"] = tuple(framework_prefixes)
    if own_prefixes is not None:
        _config["own_prefixes"] = tuple(own_prefixes)
    if own_files is not None:
        _config["own_files"] = tuple(own_files)


def get_config() -> dict[str, Any]:
    """Return the current configuration dict (mutable reference)."""
    return _config
