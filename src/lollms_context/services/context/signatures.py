"""Regex-based declaration extraction.

Keeps the class and function header lines of a module and drops the bodies.
Nothing is parsed, so unusual formatting can be missed.
"""

from __future__ import annotations

import re
from typing import List, Tuple

PYTHON_EXTENSIONS = (".py", ".pyw", ".pyi")
SCRIPT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")

NO_PYTHON_SIGNATURES = "No Python signatures found."
NO_SCRIPT_SIGNATURES = "No JavaScript/TypeScript signatures found."
UNSUPPORTED = "Signature extraction not supported for this file type."

_PY_CLASS = re.compile(r"^\s*class\s+([a-zA-Z_]\w*)")
_PY_FUNCTION = re.compile(r"^\s*(?:async\s+)?def\s+([a-zA-Z_]\w*)\s*\(.*?\)(?:\s*->\s*[^:]+?)?\s*:")

_SCRIPT_FUNCTION = re.compile(r"^(?:export\s+)?(?:async\s+)?function\s+([\w$]+)\s*\(.*?\)", re.MULTILINE)
_SCRIPT_CLASS = re.compile(r"^(?:export\s+)?class\s+([\w$]+)", re.MULTILINE)
_SCRIPT_ARROW = re.compile(
    r"^(?:export\s+)?(?:const|let|var)\s+([\w$]+)\s*=\s*(?:async\s*)?\(.*?\)\s*=>",
    re.MULTILINE,
)
_ASSIGNMENT_TAIL = re.compile(r"\s*=\s*.*$")
_TRAILING_COLON = re.compile(r":\s*$")


def extract_signatures(code: str, extension: str) -> str:
    extension = extension.lower()
    if extension in PYTHON_EXTENSIONS:
        return "\n".join(_python_signatures(code)) or NO_PYTHON_SIGNATURES
    if extension in SCRIPT_EXTENSIONS:
        return "\n".join(_script_signatures(code)) or NO_SCRIPT_SIGNATURES
    return UNSUPPORTED


def _python_signatures(code: str) -> List[str]:
    signatures: List[str] = []
    for line in code.splitlines():
        class_match = _PY_CLASS.match(line)
        if class_match:
            signatures.append(f"class {class_match.group(1)}: ...")
            continue
        function_match = _PY_FUNCTION.match(line)
        if function_match:
            signatures.append(_TRAILING_COLON.sub("", function_match.group(0)))
    return signatures


def _script_signatures(code: str) -> List[str]:
    found: List[Tuple[int, str]] = [(match.start(), match.group(0)) for match in _SCRIPT_FUNCTION.finditer(code)]
    found.extend((match.start(), match.group(0)) for match in _SCRIPT_CLASS.finditer(code))
    # Arrow functions keep only the binding: `export const add`.
    found.extend((match.start(), _ASSIGNMENT_TAIL.sub("", match.group(0))) for match in _SCRIPT_ARROW.finditer(code))
    return [signature for _, signature in sorted(found)]
