import glob
import os
import re
from typing import List, Optional

from .preferences import ProjectPreferences
from .utils import format_bytes

MAX_DISPLAYED_BUILDS = 10
BUILD_DIRS_KEY = "buildOutputDirList"
GUID_FILE = "GUID.txt"
VERSION_FILE = "ProjectVersion.txt"

_PROJECT_VERSION_RE = re.compile(r"^\d{4}\.\d\Z")


def get_all_build_directories(prefs: ProjectPreferences) -> List[str]:
    """Tracked build directories, padded with empty strings to MAX_DISPLAYED_BUILDS."""
    result = [""] * MAX_DISPLAYED_BUILDS
    stored = prefs.get(BUILD_DIRS_KEY)
    if not stored:
        return result
    for i, path in enumerate(stored.split(";")[:MAX_DISPLAYED_BUILDS]):
        result[i] = path
    return result


def add_build_directory(prefs: ProjectPreferences, build_path: str) -> None:
    build_paths = prefs.get(BUILD_DIRS_KEY).split(";")
    if build_path in build_paths:
        return
    build_paths = [build_path] + build_paths
    build_paths += [""] * (MAX_DISPLAYED_BUILDS - len(build_paths))
    prefs.set(BUILD_DIRS_KEY, ";".join(build_paths[:MAX_DISPLAYED_BUILDS]))


def remove_build_directory(prefs: ProjectPreferences, build_path: str) -> None:
    build_paths = prefs.get(BUILD_DIRS_KEY).split(";")
    if build_path in build_paths:
        build_paths.remove(build_path)
    build_paths += [""] * (MAX_DISPLAYED_BUILDS - len(build_paths))
    prefs.set(BUILD_DIRS_KEY, ";".join(build_paths))


def first_valid_build_path(prefs: ProjectPreferences) -> str:
    return next((path for path in get_all_build_directories(prefs) if build_is_valid(path)), "")


def valid_build_exists(prefs: ProjectPreferences) -> bool:
    return bool(first_valid_build_path(prefs))


def get_unity_version_of_build(build_path: str) -> str:
    # First line looks like "m_EditorVersion: 2019.3.4f1"; keep "2019.3".
    if not build_path:
        return ""
    version_file = os.path.join(build_path, VERSION_FILE)
    if not os.path.isfile(version_file):
        return ""
    with open(version_file, "r", encoding="utf-8", errors="ignore") as handle:
        first_line = handle.readline().strip()
    parts = first_line.split(" ")
    if len(parts) < 2:
        return ""
    version = parts[1][:6]
    return version if _PROJECT_VERSION_RE.match(version) else ""


def build_is_valid(build_path: str) -> bool:
    if not build_path:
        return False
    version = get_unity_version_of_build(build_path)
    if not version:
        return False
    descriptor = os.path.basename(os.path.normpath(build_path))
    if version == "2019.3":
        return build_is_compatible_for_2019_3(build_path, descriptor)
    if version == "2020.2":
        return build_is_compatible_for_2020_2(build_path, descriptor)
    # Unknown layouts for other versions are assumed valid.
    return True


def build_is_compatible_for_2019_3(build_path: str, descriptor: str) -> bool:
    build_dir = os.path.join(build_path, "Build")
    expected = (
        f"{descriptor}.data.unityweb",
        f"{descriptor}.wasm.code.unityweb",
        f"{descriptor}.wasm.framework.unityweb",
        f"{descriptor}.json",
        "UnityLoader.js",
    )
    return all(os.path.isfile(os.path.join(build_dir, name)) for name in expected)


def build_is_compatible_for_2020_2(build_path: str, descriptor: str) -> bool:
    build_dir = os.path.join(build_path, "Build")
    pattern_dir = glob.escape(build_dir)
    escaped = glob.escape(descriptor)

    def has(pattern: str) -> bool:
        return bool(glob.glob(os.path.join(pattern_dir, pattern)))

    return (
        has(f"{escaped}.data.*")
        and has(f"{escaped}.framework.js.*")
        and os.path.isfile(os.path.join(build_dir, f"{descriptor}.loader.js"))
        and has(f"{escaped}.wasm.*")
    )


def read_build_guid(build_path: str) -> Optional[str]:
    guid_path = os.path.join(build_path, GUID_FILE)
    if not os.path.isfile(guid_path):
        return None
    with open(guid_path, "r", encoding="utf-8") as handle:
        return handle.read().strip()


def folder_size(folder: str) -> int:
    size = 0
    for root, _dirs, files in os.walk(folder):
        for name in files:
            size += os.path.getsize(os.path.join(root, name))
    return size


def describe_build(build_path: str) -> str:
    """List label for a tracked build: its path and size on disk."""
    return f"{build_path} ({format_bytes(folder_size(build_path))})"
