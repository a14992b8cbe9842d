"""Sienna: admin analytics API for the Sienna Naturals hair-care chatbot."""

from importlib.metadata import PackageNotFoundError, version as _version

try:
    __version__ = _version("sienna-dash")
except PackageNotFoundError:
    # Source checkout without an install: read it from pyproject.toml
    import re as _re
    from pathlib import Path as _Path

    _pyproject = _Path(__file__).resolve().parent.parent / "pyproject.toml"
    _match = _re.search(r'^version\s*=\s*"([^"]+)"', _pyproject.read_text(), _re.MULTILINE)
    __version__ = _match.group(1) if _match else "0.0.0"
