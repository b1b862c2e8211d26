"""Architectural tests for module layering.

Static inspection only: source files are parsed with ``ast`` and never
imported, so these checks run without a database or web server.
"""

from __future__ import annotations

import ast
import json
import os
from typing import Iterable, List, Set

import pytest

PACKAGE_DIR = "ordersync"
LOGIC_DIR = os.path.join(PACKAGE_DIR, "logic")
ROUTES_DIR = os.path.join(PACKAGE_DIR, "routes")
SCHEMAS_DIR = "schemas"

SQL_KEYWORDS = ("SELECT ", "INSERT INTO", "UPDATE ", "DELETE FROM")


def _py_files(root: str) -> List[str]:
    assert os.path.isdir(root), f"Expected package directory missing: {root}"
    return sorted(os.path.join(root, f) for f in os.listdir(root) if f.endswith(".py"))


def _parse(path: str) -> ast.Module:
    with open(path, "r", encoding="utf-8") as f:
        try:
            return ast.parse(f.read(), filename=path)
        except SyntaxError as exc:
            pytest.fail(f"Cannot parse {path}: {exc}")


def _imported_modules(tree: ast.Module) -> Set[str]:
    names: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
    return names


def _string_constants(tree: ast.Module) -> Iterable[str]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            yield node.value


def test_logic_layer_is_free_of_web_framework_imports():
    offenders = []
    for path in _py_files(LOGIC_DIR):
        for mod in _imported_modules(_parse(path)):
            if mod.split(".")[0] in {"fastapi", "starlette"} or mod.startswith("ordersync.routes"):
                offenders.append(f"{path}: {mod}")
    assert not offenders, f"Logic modules must not depend on the HTTP layer: {offenders}"


@pytest.mark.parametrize("module", ["order_model.py", "reducer.py"])
def test_pure_ordering_modules_do_not_touch_storage(module):
    imports = _imported_modules(_parse(os.path.join(LOGIC_DIR, module)))
    forbidden = {
        m for m in imports
        if m.split(".")[0] in {"sqlalchemy", "anyio"}
        or m.startswith("ordersync.db")
        or m.endswith(("document_store", "repository_items", "repository_visits", "committer"))
    }
    assert not forbidden, f"{module} must stay a pure function of its inputs; found {sorted(forbidden)}"


def test_routes_issue_no_raw_sql():
    offenders = []
    for path in _py_files(ROUTES_DIR):
        for value in _string_constants(_parse(path)):
            if any(kw in value.upper() for kw in SQL_KEYWORDS):
                offenders.append(f"{path}: {value[:40]!r}")
    assert not offenders, f"SQL belongs in repository modules: {offenders}"


def test_http_statuses_come_from_error_mapping():
    """Domain error handling in routes goes through the shared mapping."""
    for path in _py_files(ROUTES_DIR):
        tree = _parse(path)
        for node in ast.walk(tree):
            if isinstance(node, ast.Call) and getattr(node.func, "id", None) == "HTTPException":
                pytest.fail(f"{path} raises HTTPException directly; raise a domain error instead")


def test_committer_is_the_only_logic_module_calling_batch_write():
    callers = []
    for path in _py_files(LOGIC_DIR):
        tree = _parse(path)
        for node in ast.walk(tree):
            if (
                isinstance(node, ast.Attribute)
                and node.attr == "batch_write"
                and isinstance(node.ctx, ast.Load)
            ):
                callers.append(os.path.basename(path))
    assert set(callers) == {"committer.py"}, f"Unexpected batch_write callers: {sorted(set(callers))}"


@pytest.mark.parametrize("name", ["ItemList.schema.json", "VisitPlan.schema.json", "Problem.schema.json"])
def test_response_schemas_exist_and_parse(name):
    path = os.path.join(SCHEMAS_DIR, name)
    assert os.path.exists(path), f"Required JSON schema file missing: {path}"
    with open(path, "r", encoding="utf-8") as f:
        schema = json.load(f)
    assert schema.get("$schema", "").endswith("2020-12/schema")
    assert schema.get("type") == "object"
    assert schema.get("required"), f"{name} must list required properties"
