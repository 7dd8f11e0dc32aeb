"""Dependency manifest parsing and file-tree helpers for signal sources.

Signal sources fetch raw manifest contents; the parsing is shared here so
every source derives dependencies the same way. A concrete `SignalSource`
(see `services.collaborators`) implements `fetch_dependency_manifests` by
handing its file reader to `collect_dependencies`; the orchestrator only
uses `extension_histogram`, through `build_signal_bundle`.

Supported manifests:
    package.json      -> manager "npm" (dependencies + devDependencies)
    requirements.txt  -> manager "pip"
    go.mod            -> manager "go"
"""

import json
import logging
import re
from collections import Counter
from typing import Awaitable, Callable, Iterable

from models.schemas.signals import DependencyRecord, FileEntry

logger = logging.getLogger(__name__)

_REQUIREMENT_LINE = re.compile(
    r"^([A-Za-z0-9_.\-]+)(?:\[.*\])?\s*([<>=!~]+)?\s*(.+)?$"
)
_GO_REQUIRE_LINE = re.compile(r"^\s*([A-Za-z0-9_.\-/]+)\s+v[0-9]\S+")

# Path fragments that never hold the project's own manifests
_IGNORED_DIRS = ("node_modules/", ".git/")


def parse_package_json(content: str) -> list[DependencyRecord]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return []
    if not isinstance(data, dict):
        return []

    deps: list[DependencyRecord] = []
    for section in ("dependencies", "devDependencies"):
        entries = data.get(section) or {}
        if not isinstance(entries, dict):
            continue
        for name, version in entries.items():
            deps.append(DependencyRecord(manager="npm", name=name, version=str(version)))
    return deps


def parse_requirements_txt(content: str) -> list[DependencyRecord]:
    deps: list[DependencyRecord] = []
    for line in content.splitlines():
        stripped = line.split(" #", 1)[0].strip()
        # comments, includes and options such as -r or --index-url
        if not stripped or stripped.startswith(("#", "-")):
            continue
        match = _REQUIREMENT_LINE.match(stripped)
        if not match:
            continue
        name, op, version = match.groups()
        pinned = f"{op}{version}" if op and version else None
        deps.append(DependencyRecord(manager="pip", name=name, version=pinned))
    return deps


def parse_go_mod(content: str) -> list[DependencyRecord]:
    deps: list[DependencyRecord] = []
    for line in content.splitlines():
        line = line.strip()
        if line.startswith("require "):
            line = line[len("require "):]
        match = _GO_REQUIRE_LINE.match(line)
        if match:
            deps.append(DependencyRecord(manager="go", name=match.group(1)))
    return deps


MANIFEST_PARSERS: dict[str, Callable[[str], list[DependencyRecord]]] = {
    "package.json": parse_package_json,
    "requirements.txt": parse_requirements_txt,
    "go.mod": parse_go_mod,
}


def _depth(path: str) -> int:
    return len([p for p in path.split("/") if p])


def pick_manifest_path(paths: Iterable[str], filename: str) -> str | None:
    """Pick the shallowest (then shortest) path ending in `filename`."""
    candidates = [
        p for p in paths
        if (p.lower() == filename or p.lower().endswith("/" + filename))
        and not any(p.startswith(d) or ("/" + d) in p for d in _IGNORED_DIRS)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda p: (_depth(p), len(p)))


async def collect_dependencies(
    tree: Iterable[FileEntry],
    read_file: Callable[[str], Awaitable[str | None]],
) -> list[DependencyRecord]:
    """Locate known manifests in a file tree, read them and parse dependencies.

    `read_file` returns the file contents or None when it cannot be read;
    unreadable manifests are skipped.
    """
    paths = [entry.path for entry in tree]
    deps: list[DependencyRecord] = []
    for filename, parser in MANIFEST_PARSERS.items():
        path = pick_manifest_path(paths, filename)
        if path is None:
            continue
        content = await read_file(path)
        if content:
            deps.extend(parser(content))
        logger.debug("Manifest %s: %s", filename, path)
    return deps


def file_extension(path: str) -> str | None:
    name = path.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if dot <= 0 or dot == len(name) - 1:
        return None
    return name[dot + 1:].lower()


def extension_histogram(tree: Iterable[FileEntry]) -> dict[str, int]:
    """Count files per extension; files without one go to "none"."""
    counts = Counter(entry.extension or file_extension(entry.path) or "none" for entry in tree)
    return dict(counts)
