#!/usr/bin/env python3
"""
Keep the connector core usable without a host framework.

Every module under src/soap_connector/core/ may import the standard library,
its declared third-party stack and sibling core modules. MCP, the tool
registry and the server entry point are off limits, and so is the top-level
``soap_connector`` package, whose __init__ pulls the registry in.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path
from typing import Iterable, Optional

REPO_ROOT = Path(__file__).resolve().parent.parent
CORE_DIR = REPO_ROOT / "src" / "soap_connector" / "core"

FORBIDDEN_PREFIXES = (
    "mcp",
    "fastmcp",
    "starlette",
    "soap_connector.registry",
    "soap_connector.server",
)


def is_forbidden(module: str) -> bool:
    if module == "soap_connector":
        return True
    return any(
        module == prefix or module.startswith(prefix + ".")
        for prefix in FORBIDDEN_PREFIXES
    )


def _imported_modules(tree: ast.AST) -> Iterable[tuple[int, str]]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            yield node.lineno, node.module


def scan_source(source: str, label: str = "<string>") -> list[str]:
    errors: list[str] = []
    for lineno, module in _imported_modules(ast.parse(source)):
        if is_forbidden(module):
            errors.append(f"{label}:{lineno}: forbidden import '{module}'")
    return errors


def scan_file(path: Path) -> list[str]:
    label = path.relative_to(REPO_ROOT) if REPO_ROOT in path.parents else path
    return scan_source(path.read_text(), str(label))


def main(core_dir: Optional[Path] = None) -> int:
    violations: list[str] = []
    for py_file in sorted((core_dir or CORE_DIR).rglob("*.py")):
        violations.extend(scan_file(py_file))

    for v in violations:
        print(v, file=sys.stderr)
    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
