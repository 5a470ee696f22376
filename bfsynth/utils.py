"""
BFSynth Utilities

Run metadata collected into saved bundles for reproducibility.
"""

import platform
import subprocess
import sys
from importlib import metadata
from typing import Any, Dict

from . import __version__

KEY_PACKAGES = ("numpy", "pytest")


def _git_sha() -> str:
    try:
        return (
            subprocess.check_output(
                ["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL
            )
            .decode()
            .strip()
        )
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def collect_run_metadata() -> Dict[str, Any]:
    """
    Collect metadata about the current run environment.

    Includes Python version, platform, git commit, BFSynth version and the
    versions of key installed packages.

    Returns:
        Dict containing all environment metadata
    """
    packages = {}
    for name in KEY_PACKAGES:
        try:
            packages[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            continue

    return {
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "git_sha": _git_sha(),
        "bfsynth_version": __version__,
        "packages": packages,
        "timestamp": None,  # Will be set by caller if needed
    }


def format_metadata_summary(meta: Dict[str, Any]) -> str:
    """
    Format metadata into a human-readable summary.

    Args:
        meta: Metadata dictionary from collect_run_metadata()

    Returns:
        Formatted string summary
    """
    lines = [
        f"BFSynth v{meta.get('bfsynth_version', 'unknown')}",
        f"Python {meta.get('python', 'unknown')}",
        f"Platform: {meta.get('platform', 'unknown')}",
        f"Git SHA: {meta.get('git_sha', 'unknown')[:8]}",
    ]

    if meta.get("timestamp"):
        lines.append(f"Timestamp: {meta['timestamp']}")

    for pkg, version in meta.get("packages", {}).items():
        lines.append(f"{pkg}: {version}")

    return "\n".join(lines)
