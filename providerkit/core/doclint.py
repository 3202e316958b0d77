"""
Documentation lint: every fenced ```toml block must parse.
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

_FENCE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})\s*(?P<info>[^`\s]*)")


@dataclass
class TomlBlock:
    line: int  # 1-based line of the first content line
    text: str


@dataclass
class LintError:
    path: str
    line: int
    message: str

    def render(self) -> str:
        return f"{self.path}:{self.line}: {self.message}"


def extract_toml_blocks(text: str) -> List[TomlBlock]:
    blocks: List[TomlBlock] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        match = _FENCE.match(lines[i])
        if not match:
            i += 1
            continue
        fence = match.group("fence")
        info = match.group("info").lower()
        start = i + 1
        end = start
        while end < len(lines):
            stripped = lines[end].strip()
            if stripped.startswith(fence[0] * len(fence)) and not stripped.strip(fence[0]):
                break
            end += 1
        if info == "toml":
            blocks.append(TomlBlock(line=start + 1, text="\n".join(lines[start:end])))
        i = end + 1
    return blocks


def lint_text(text: str, path: str = "<string>") -> List[LintError]:
    errors: List[LintError] = []
    for block in extract_toml_blocks(text):
        try:
            tomllib.loads(block.text)
        except tomllib.TOMLDecodeError as exc:
            errors.append(LintError(path, block.line, f"invalid TOML block: {exc}"))
    return errors


def lint_markdown(path: str) -> List[LintError]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        return [LintError(path, 1, f"not valid UTF-8: {exc}")]
    return lint_text(text, path)


def lint_paths(paths: Iterable[str]) -> List[LintError]:
    """Lint markdown files; directories are searched for `*.md`."""
    errors: List[LintError] = []
    for raw in paths:
        path = Path(raw)
        files = sorted(path.rglob("*.md")) if path.is_dir() else [path]
        for file in files:
            errors.extend(lint_markdown(str(file)))
    return errors
