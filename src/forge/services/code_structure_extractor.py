"""
Best-effort symbol indexing of generated source text.

This is pattern matching, not parsing. False positives and misses are
expected; the results only enrich prompts. Nothing here raises on malformed
input; text that does not match is skipped.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from src.forge.models.context_models import CodeStructure, ComponentInfo, FunctionInfo
from src.forge.models.generation_models import GeneratedFile

logger = logging.getLogger(__name__)

_DECLARATION_PATTERN = re.compile(r"\b(?:function|const|let|var)\s+([A-Za-z_$][\w$]*)")
_COMPONENT_PATTERN = re.compile(r"\b(?:const|function)\s+([A-Z][A-Za-z0-9_]*)")
_FUNCTION_PARAMS_PATTERN = re.compile(r"\bfunction\s+([A-Za-z_$][\w$]*)\s*\(([^)]*)\)")
_ARROW_PARAMS_PATTERN = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?\(([^)]*)\)\s*(?::[^=]+)?=>"
)
_IMPORT_FROM_PATTERN = re.compile(r"\bimport\s+[^;'\"`]*?\s+from\s+['\"`]([^'\"`]+)['\"`]")
_BARE_IMPORT_PATTERN = re.compile(r"^\s*import\s+['\"`]([^'\"`]+)['\"`]", re.MULTILINE)
_EXPORT_PATTERN = re.compile(
    r"\bexport\s+(?:default\s+)?(?:async\s+)?(?:function|const|let|var|class)\s+([A-Za-z_$][\w$]*)"
)
_CODE_FENCE_PATTERN = re.compile(r"```([^\n`]*)\n([\s\S]*?)```")

_LANGUAGE_EXTENSIONS = {
    "typescript": "ts",
    "ts": "ts",
    "tsx": "tsx",
    "javascript": "js",
    "js": "js",
    "jsx": "jsx",
    "python": "py",
    "py": "py",
    "php": "php",
    "css": "css",
    "html": "html",
    "json": "json",
}


@dataclass
class ExtractedSymbols:
    """Symbols found in a single file."""

    path: str
    functions: Dict[str, List[str]] = field(default_factory=dict)
    components: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)


def _split_params(raw: str) -> List[str]:
    params = []
    for part in raw.split(","):
        name = part.strip().split("=")[0].split(":")[0].strip().lstrip(".")
        if name and re.match(r"^[A-Za-z_$][\w$]*$", name):
            params.append(name)
    return params


def _unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def extract_symbols(file: GeneratedFile) -> ExtractedSymbols:
    """Scan one file's text for declarations, components, imports and exports."""
    result = ExtractedSymbols(path=file.path)
    content = file.content
    if not isinstance(content, str) or not content:
        return result

    params_by_name: Dict[str, List[str]] = {}
    for pattern in (_FUNCTION_PARAMS_PATTERN, _ARROW_PARAMS_PATTERN):
        for name, raw_params in pattern.findall(content):
            params_by_name.setdefault(name, _split_params(raw_params))

    for name in _unique(_DECLARATION_PATTERN.findall(content)):
        result.functions[name] = params_by_name.get(name, [])

    result.components = _unique(_COMPONENT_PATTERN.findall(content))
    result.imports = _unique(_IMPORT_FROM_PATTERN.findall(content) + _BARE_IMPORT_PATTERN.findall(content))
    result.exports = _unique(_EXPORT_PATTERN.findall(content))
    return result


def merge_symbols(structure: CodeStructure, extracted: ExtractedSymbols) -> CodeStructure:
    """
    Merge one file's symbols into the project index.

    Unseen functions and components are added; existing entries are left
    alone. A file's import/export lists replace its previous lists when the
    file declared any.
    """
    for name, params in extracted.functions.items():
        if name not in structure.functions:
            structure.functions[name] = FunctionInfo(params=params, file=extracted.path)

    for name in extracted.components:
        if name not in structure.components:
            structure.components[name] = ComponentInfo(
                file=extracted.path,
                dependencies=[spec for spec in extracted.imports if not spec.startswith(".")],
            )

    if extracted.imports:
        structure.imports[extracted.path] = list(extracted.imports)
    if extracted.exports:
        structure.exports[extracted.path] = list(extracted.exports)
    return structure


def update_structure(structure: CodeStructure, files: Iterable[GeneratedFile]) -> CodeStructure:
    for file in files:
        merge_symbols(structure, extract_symbols(file))
    return structure


def extract_code_blocks(text: str) -> List[GeneratedFile]:
    """
    Pull fenced code blocks out of an AI response.

    A fence info string such as ``tsx src/App.tsx`` yields that path; blocks
    without a path are named ``snippet-<n>.<ext>``.
    """
    if not isinstance(text, str):
        return []

    files: List[GeneratedFile] = []
    for index, (info, body) in enumerate(_CODE_FENCE_PATTERN.findall(text), start=1):
        parts = info.strip().split()
        language = parts[0].lower() if parts else ""
        path = parts[1] if len(parts) > 1 else ""
        if not path and language and ("/" in language or "." in language):
            path, language = parts[0], ""
        if not path:
            path = f"snippet-{index}.{_LANGUAGE_EXTENSIONS.get(language, 'txt')}"
        files.append(
            GeneratedFile(
                path=path,
                content=body,
                language=language or "text",
                type="snippet" if path.startswith("snippet-") else "component",
            )
        )
    return files
