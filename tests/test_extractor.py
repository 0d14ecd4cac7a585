from docverify_core.extractor import FenceScanner, extract_code_examples, find_expected_output


DOC = """# Getting Started

Some intro text.

```python
print("hi")
# expected: hi
```

## Node

```js
console.log(1 + 1)
// Expected: 2
```

```json
{"not": "runnable"}
```

```go
fmt.Println("go")
```
"""


def test_extracts_supported_blocks_in_order() -> None:
    examples = extract_code_examples(DOC, "doc-1", "docs/start.md")

    assert [ex.language for ex in examples] == ["python", "javascript", "go"]
    python_ex = examples[0]
    assert python_ex.id == "doc-1-6"
    assert python_ex.document_id == "doc-1"
    assert python_ex.document_path == "docs/start.md"
    assert python_ex.code == 'print("hi")\n# expected: hi'
    assert python_ex.line_start == 6
    assert python_ex.line_end == 7
    assert python_ex.heading == "Getting Started"
    assert python_ex.expected_output == "hi"


def test_expected_output_uses_language_comment_syntax() -> None:
    examples = extract_code_examples(DOC, "doc-1", "docs/start.md")

    assert examples[1].expected_output == "2"
    assert examples[2].expected_output is None


def test_adjacent_fences_inherit_prior_heading() -> None:
    examples = extract_code_examples(DOC, "doc-1", "docs/start.md")

    assert examples[1].heading == "Node"
    assert examples[2].heading == "Node"


def test_extraction_is_deterministic() -> None:
    first = extract_code_examples(DOC, "doc-1", "docs/start.md")
    second = extract_code_examples(DOC, "doc-1", "docs/start.md")

    assert [(e.id, e.line_start, e.line_end, e.code) for e in first] == [
        (e.id, e.line_start, e.line_end, e.code) for e in second
    ]


def test_heading_inside_fence_does_not_reset_heading() -> None:
    content = """## Setup

```bash
# Install the thing
echo ok
```

```python
print(1)
```
"""
    examples = extract_code_examples(content, "d", "d.md")

    assert [ex.heading for ex in examples] == ["Setup", "Setup"]
    assert examples[0].code == "# Install the thing\necho ok"


def test_heading_inside_unsupported_fence_is_ignored() -> None:
    content = """# Real

```
# not a heading
```

```text
# also not a heading
```

```py
x = 1
```
"""
    examples = extract_code_examples(content, "d", "d.md")

    assert len(examples) == 1
    assert examples[0].heading == "Real"


def test_unterminated_fence_is_dropped() -> None:
    content = """# Title

```python
print("ok")
```

```python
print("never closed")
"""
    examples = extract_code_examples(content, "d", "d.md")

    assert len(examples) == 1
    assert examples[0].code == 'print("ok")'


def test_empty_body_yields_no_example() -> None:
    content = "```python\n```\n\n```bash\n   \n```\n"

    assert extract_code_examples(content, "d", "d.md") == []


def test_default_heading_when_none_precedes() -> None:
    examples = extract_code_examples("```sh\necho hi\n```\n", "d", "d.md")

    assert examples[0].heading == "Introduction"


def test_fence_with_info_string_is_not_an_example() -> None:
    content = '```python title="demo.py"\nprint(1)\n```\n'

    assert extract_code_examples(content, "d", "d.md") == []


def test_first_expected_comment_wins() -> None:
    lines = ["# expected: first", "print('x')", "# expected: second"]

    assert find_expected_output(lines, "python") == "first"
    assert find_expected_output(["// expected: nope"], "python") is None


def test_windows_line_endings() -> None:
    content = "# T\r\n\r\n```py\r\nprint(2)\r\n```\r\n"

    examples = FenceScanner().extract(content, "d", "d.md")

    assert len(examples) == 1
    assert examples[0].code == "print(2)"


def test_code_body_is_kept_verbatim() -> None:
    content = "```python\nprint('a\x0cb\x0bc\x1cd\x85e')\n```\n"

    [example] = extract_code_examples(content, "d", "d.md")

    assert example.code == "print('a\x0cb\x0bc\x1cd\x85e')"
    assert (example.line_start, example.line_end) == (2, 2)


def test_unicode_separators_in_prose_do_not_shift_lines() -> None:
    content = "# Title\nintro\u2028still\u2029more\n```sh\necho hi\n```\n"

    [example] = extract_code_examples(content, "d", "d.md")

    assert example.line_start == 4
    assert example.id == "d-4"
    assert example.heading == "Title"
