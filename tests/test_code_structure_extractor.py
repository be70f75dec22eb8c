from __future__ import annotations

from src.forge.models.context_models import CodeStructure, FunctionInfo
from src.forge.models.generation_models import GeneratedFile
from src.forge.services.code_structure_extractor import (
    extract_code_blocks,
    extract_symbols,
    merge_symbols,
    update_structure,
)

TODO_LIST = """import React, { useState } from 'react';
import { api } from '../lib/api';
import './TodoList.css';

export const TodoList = ({ items, onToggle }) => {
  const [filter, setFilter] = useState('all');
  return null;
};

export default function formatDate(date, locale = 'en') {
  return date.toLocaleDateString(locale);
}
"""


def test_extract_symbols_finds_declarations_imports_and_exports() -> None:
    symbols = extract_symbols(GeneratedFile(path="src/TodoList.tsx", content=TODO_LIST))

    assert "TodoList" in symbols.functions
    assert symbols.functions["formatDate"] == ["date", "locale"]
    assert "TodoList" in symbols.components
    assert "formatDate" not in symbols.components
    assert symbols.imports == ["react", "../lib/api", "./TodoList.css"]
    assert symbols.exports == ["TodoList", "formatDate"]


def test_extract_symbols_reads_arrow_function_params() -> None:
    symbols = extract_symbols(GeneratedFile(path="a.ts", content="const add = (a: number, b = 2) => a + b;"))

    assert symbols.functions == {"add": ["a", "b"]}


def test_extract_symbols_tolerates_empty_or_odd_content() -> None:
    assert extract_symbols(GeneratedFile(path="empty.ts", content="")).functions == {}
    assert extract_symbols(GeneratedFile(path="prose.md", content="Just words ((( and ```")).imports == []


def test_merge_adds_only_unseen_symbols() -> None:
    structure = CodeStructure(functions={"formatDate": FunctionInfo(params=["d"], file="old.ts")})
    symbols = extract_symbols(GeneratedFile(path="src/TodoList.tsx", content=TODO_LIST))

    merge_symbols(structure, symbols)

    assert structure.functions["formatDate"].file == "old.ts"
    assert structure.functions["formatDate"].params == ["d"]
    assert structure.components["TodoList"].file == "src/TodoList.tsx"
    assert structure.components["TodoList"].dependencies == ["react"]
    assert structure.imports["src/TodoList.tsx"] == ["react", "../lib/api", "./TodoList.css"]


def test_file_without_imports_keeps_previous_import_entry() -> None:
    structure = update_structure(
        CodeStructure(),
        [GeneratedFile(path="src/a.ts", content="import x from 'lodash';\nconst a = 1;")],
    )

    update_structure(structure, [GeneratedFile(path="src/a.ts", content="const b = 2;")])

    assert structure.imports["src/a.ts"] == ["lodash"]
    assert set(structure.functions) == {"a", "b"}


def test_extract_code_blocks_uses_fence_path_or_snippet_name() -> None:
    text = (
        "Here you go:\n"
        "```tsx src/App.tsx\nexport default function App() { return null; }\n```\n"
        "and a helper\n"
        "```ts\nconst helper = () => 1;\n```\n"
        "```\nplain\n```"
    )

    files = extract_code_blocks(text)

    assert [file.path for file in files] == ["src/App.tsx", "snippet-2.ts", "snippet-3.txt"]
    assert files[0].type == "component"
    assert files[0].language == "tsx"
    assert files[1].type == "snippet"
    assert "const helper" in files[1].content


def test_extract_code_blocks_returns_empty_for_plain_text() -> None:
    assert extract_code_blocks("no code here") == []
