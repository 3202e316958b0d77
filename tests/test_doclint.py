"""Tests for the markdown TOML block lint."""

from pathlib import Path

from providerkit.core.doclint import extract_toml_blocks, lint_paths, lint_text

DOCS_DIR = Path(__file__).resolve().parent.parent / "docs"

SAMPLE = """# Title

```toml
model = "o3"
```

```bash
not = toml = at all
```

~~~toml
[model_providers.x]
name = "X"
~~~

````toml
bad = 
````
"""


def test_extract_only_toml_blocks() -> None:
    blocks = extract_toml_blocks(SAMPLE)

    assert [block.line for block in blocks] == [4, 12, 17]
    assert blocks[0].text == 'model = "o3"'
    assert blocks[1].text == '[model_providers.x]\nname = "X"'


def test_lint_reports_bad_block_with_line() -> None:
    errors = lint_text(SAMPLE, "sample.md")

    assert len(errors) == 1
    assert errors[0].line == 17
    assert errors[0].render().startswith("sample.md:17: invalid TOML block")


def test_unterminated_block_runs_to_end() -> None:
    blocks = extract_toml_blocks("```toml\na = 1\n")
    assert [block.text for block in blocks] == ["a = 1"]


def test_lint_paths_walks_directories(tmp_path: Path) -> None:
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "bad.md").write_text("```toml\n= 1\n```\n", encoding="utf-8")
    (tmp_path / "good.md").write_text("```toml\na = 1\n```\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("```toml\n= 1\n```\n", encoding="utf-8")

    errors = lint_paths([str(tmp_path)])

    assert [Path(error.path).name for error in errors] == ["bad.md"]


def test_project_docs_examples_parse() -> None:
    assert lint_paths([str(DOCS_DIR)]) == []


def test_non_utf8_file_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "latin1.md"
    path.write_bytes("caf\xe9\n```toml\na = 1\n```\n".encode("latin-1"))

    errors = lint_paths([str(path)])

    assert len(errors) == 1
    assert errors[0].line == 1
    assert "not valid UTF-8" in errors[0].message
