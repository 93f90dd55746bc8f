"""
System probing for the ``doctor`` command.

Reports which external tools and Python libraries are available, with
their versions, and whether a run could start.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional

from audioshop.config import REQUIRED_TOOLS, install_hint

logger = logging.getLogger(__name__)

_VERSION_FLAGS = {"ffmpeg": "-version", "ffprobe": "-version", "sox": "--version"}
_PYTHON_LIBS = (("PIL", "Pillow"), ("numpy", "numpy"), ("yaml", "PyYAML"), ("tqdm", "tqdm"))


@dataclass
class ToolProbe:
    """Result of probing a single external tool."""
    name: str
    found: bool
    path: Optional[str]
    version: Optional[str]
    notes: Optional[str] = None


def _probe_tool(name: str, version_flag: str = "--version") -> ToolProbe:
    which_path = shutil.which(name)
    if which_path is None:
        return ToolProbe(name=name, found=False, path=None, version=None)
    try:
        result = subprocess.run(
            [which_path, version_flag], capture_output=True, timeout=10,
        )
        output = (result.stdout or result.stderr).decode(errors="replace")
        first_line = output.strip().split("\n")[0].strip()
        return ToolProbe(name=name, found=True, path=which_path,
                         version=first_line or "unknown")
    except (subprocess.TimeoutExpired, OSError) as exc:
        return ToolProbe(name=name, found=True, path=which_path,
                         version=None, notes=f"Version check failed: {exc}")


def _probe_python_lib(import_name: str, display_name: str) -> ToolProbe:
    try:
        mod = __import__(import_name)
    except ImportError:
        return ToolProbe(name=display_name, found=False, path=None, version=None)
    version = getattr(mod, "__version__", "unknown")
    return ToolProbe(name=display_name, found=True, path=None, version=str(version))


def probe_system() -> Dict[str, ToolProbe]:
    """Probe for all external tools and Python libraries."""
    probes: Dict[str, ToolProbe] = {}
    for name in REQUIRED_TOOLS:
        probes[name] = _probe_tool(name, _VERSION_FLAGS[name])
    for import_name, display_name in _PYTHON_LIBS:
        probes[display_name] = _probe_python_lib(import_name, display_name)
    return probes


def missing_tools(probes: Dict[str, ToolProbe]) -> list[str]:
    return [name for name in REQUIRED_TOOLS if not probes[name].found]


def format_diagnostics(probes: Dict[str, ToolProbe]) -> str:
    """Return a human-readable diagnostics report."""
    lines = ["audioshop diagnostics", "=" * 40,
             f"Platform: {platform.system()} {platform.release()}",
             f"Python:   {platform.python_version()}", "",
             "External tools:"]
    for name in REQUIRED_TOOLS:
        p = probes[name]
        status = "FOUND" if p.found else "NOT FOUND"
        ver = f"  ({p.version})" if p.version else ""
        path = f"  [{p.path}]" if p.path else ""
        lines.append(f"  {name:20s} {status}{ver}{path}")
        if p.notes:
            lines.append(f"    {p.notes}")
    lines += ["", "Python libraries:"]
    for _, display_name in _PYTHON_LIBS:
        p = probes[display_name]
        status = "FOUND" if p.found else "NOT FOUND"
        ver = f"  ({p.version})" if p.version else ""
        lines.append(f"  {display_name:20s} {status}{ver}")
    lines.append("")
    missing = missing_tools(probes)
    if missing:
        lines.append(f"Missing: {', '.join(missing)}. Install with: {install_hint()}")
    else:
        lines.append("All dependencies found.")
    return "\n".join(lines)
