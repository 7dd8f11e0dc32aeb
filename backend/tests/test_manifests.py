import json

import pytest

from models.schemas.signals import FileEntry
from services.manifests import (
    collect_dependencies,
    extension_histogram,
    file_extension,
    parse_go_mod,
    parse_package_json,
    parse_requirements_txt,
    pick_manifest_path,
)


def test_parse_package_json_reads_both_sections():
    content = json.dumps({
        "name": "web",
        "dependencies": {"react": "^18.2.0", "next": "14.1.0"},
        "devDependencies": {"typescript": "^5.3.0"},
    })
    deps = parse_package_json(content)
    assert [(d.manager, d.name, d.version) for d in deps] == [
        ("npm", "react", "^18.2.0"),
        ("npm", "next", "14.1.0"),
        ("npm", "typescript", "^5.3.0"),
    ]


def test_parse_package_json_malformed():
    assert parse_package_json("{oops") == []
    assert parse_package_json("[]") == []
    assert parse_package_json(json.dumps({"dependencies": "react"})) == []


def test_parse_requirements_txt():
    content = """
# web stack
fastapi>=0.110
uvicorn[standard]==0.29.0
requests
numpy==1.26.4  # pinned for wheels
-r dev-requirements.txt
--index-url https://example.org/simple
"""
    deps = parse_requirements_txt(content)
    assert [(d.name, d.version) for d in deps] == [
        ("fastapi", ">=0.110"),
        ("uvicorn", "==0.29.0"),
        ("requests", None),
        ("numpy", "==1.26.4"),
    ]
    assert all(d.manager == "pip" for d in deps)


def test_parse_go_mod_block_and_single_line_requires():
    content = """module github.com/octocat/api

go 1.22

require github.com/pkg/errors v0.9.1

require (
\tgithub.com/gin-gonic/gin v1.9.1
\tgolang.org/x/net v0.17.0 // indirect
)
"""
    assert [d.name for d in parse_go_mod(content)] == [
        "github.com/pkg/errors",
        "github.com/gin-gonic/gin",
        "golang.org/x/net",
    ]


def test_pick_manifest_path_prefers_shallowest():
    paths = ["web/package.json", "package.json", "node_modules/react/package.json"]
    assert pick_manifest_path(paths, "package.json") == "package.json"


def test_pick_manifest_path_ignores_vendored_dirs():
    paths = ["node_modules/package.json", "apps/site/package.json", "apps/node_modules/x/package.json"]
    assert pick_manifest_path(paths, "package.json") == "apps/site/package.json"
    assert pick_manifest_path(["src/main.go"], "go.mod") is None


@pytest.mark.asyncio
async def test_collect_dependencies_reads_known_manifests():
    files = {
        "package.json": json.dumps({"dependencies": {"express": "^4.19.0"}}),
        "scripts/requirements.txt": "boto3==1.34.0\n",
    }
    tree = [FileEntry(path=p) for p in [*files, "README.md", "go.mod"]]

    async def read_file(path):
        return files.get(path)  # go.mod is unreadable

    deps = await collect_dependencies(tree, read_file)
    assert [(d.manager, d.name) for d in deps] == [("npm", "express"), ("pip", "boto3")]


def test_file_extension():
    assert file_extension("src/main.py") == "py"
    assert file_extension("archive.tar.GZ") == "gz"
    assert file_extension(".gitignore") is None
    assert file_extension("Makefile") is None
    assert file_extension("weird.") is None


def test_extension_histogram():
    tree = [
        FileEntry(path="a.py"),
        FileEntry(path="pkg/b.py"),
        FileEntry(path="Dockerfile"),
        FileEntry(path="index", extension="ts"),
    ]
    assert extension_histogram(tree) == {"py": 2, "none": 1, "ts": 1}
