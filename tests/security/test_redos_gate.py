"""ReDoS gate for hostname patterns.

Hostnames and IP literals are attacker-controlled input. Every pattern in
ssrf_guard/validation/classifier.py must be compiled by re2 (linear-time
matching), and the module must never import the stdlib ``re`` engine.
"""

from __future__ import annotations

import ast
import inspect

import pytest
import re2

from ssrf_guard.validation import classifier

_Re2PatternType = type(re2.compile(r"test"))

PATTERN_NAMES = [
    "_LEGACY_IPV4",
    "_DOMAIN_CHARS",
    "_TLD",
    "_ALL_DIGITS",
    "_LABEL",
    "_REGISTRABLE_LABEL",
    "_DOUBLE_DASH",
]


@pytest.mark.parametrize("name", PATTERN_NAMES)
def test_pattern_is_re2(name: str) -> None:
    assert isinstance(getattr(classifier, name), _Re2PatternType)


def test_classifier_does_not_import_stdlib_re() -> None:
    tree = ast.parse(inspect.getsource(classifier))
    imported: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imported.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            imported.add(node.module)
    assert "re" not in imported
    assert "re2" in imported


def test_pathological_hostname_completes() -> None:
    hostname = "a-" * 5000 + "." + "b" * 5000
    assert not classifier.is_valid_domain(hostname)
    assert not classifier.is_ip_address("1." * 5000)
