from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path
from typing import TypedDict

DISTRIBUTION_NAME = "itb-metadata-engine"


class VersionInfo(TypedDict):
    version: str
    source: str


def _find_pyproject_version() -> str:
    try:
        root = Path(__file__).resolve().parent.parent
        pyproject_path = root / "pyproject.toml"
        if not pyproject_path.exists():
            return ""
        raw = pyproject_path.read_text(encoding="utf-8")
        match = re.search(r'^version\s*=\s*"(.*?)"', raw, flags=re.MULTILINE)
        if match:
            return match.group(1).strip()
    except Exception:
        pass
    return ""


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return ""


def get_version_info() -> VersionInfo:
    version = _find_pyproject_version()
    if version:
        return {"version": version, "source": "pyproject"}
    version = _installed_version()
    if version:
        return {"version": version, "source": "installed"}
    return {"version": "0.0.0", "source": "unknown"}
