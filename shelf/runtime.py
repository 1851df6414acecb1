"""Runtime path resolution: data directory and external tools.

When the application is bundled with PyInstaller (--onefile), data files
are extracted to a temporary directory referenced by ``sys._MEIPASS``.
The helpers here resolve paths in both the development and frozen
environments.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path

log = logging.getLogger(__name__)

APP_NAME = "AnimeShelf"


def resource_path(relative_path: str) -> Path:
    """Resolve *relative_path* to a bundled resource.

    In a PyInstaller bundle ``sys._MEIPASS`` points to the extraction
    directory.  During normal development the project root (one level
    above this file's package) is used instead.
    """
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        base = Path(sys._MEIPASS)
    else:
        base = Path(__file__).resolve().parent.parent
    return base / relative_path


def app_data_dir() -> Path:
    """Return the platform data directory, creating it if needed.

    ``%APPDATA%`` on Windows, ``~/Library/Application Support`` on macOS,
    ``$XDG_CONFIG_HOME`` (or ``~/.config``) elsewhere.
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    d = base / APP_NAME
    d.mkdir(parents=True, exist_ok=True)
    return d


def subprocess_kwargs(timeout: float) -> dict:
    """Keyword arguments for ``subprocess.run`` of an external tool.

    Output is captured and, on Windows, no console window is opened.
    """
    kwargs: dict = {
        "capture_output": True,
        "timeout": timeout,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    return kwargs


def get_ffmpeg_path() -> str:
    """Return the path to the ffmpeg executable.

    Checks for a bundled ``ffmpeg.exe`` in the ``resources/`` directory
    first and falls back to the bare command name so the OS can resolve
    it via ``PATH``.
    """
    bundled = resource_path("resources") / "ffmpeg.exe"
    if bundled.is_file():
        return str(bundled)
    return "ffmpeg"


def check_executable(path: str, timeout: float = 5) -> bool:
    """Test whether ``<path> -version`` runs and exits cleanly."""
    try:
        result = subprocess.run([path, "-version"], **subprocess_kwargs(timeout))
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        log.warning("%s not found -- thumbnail generation disabled", path)
        return False
    return result.returncode == 0
