"""Code generation: glass documents to TypeScript / JavaScript functions.

The generated function destructures its arguments, evaluates every
interpolation once into ``interpolations``, renders every ``<For>`` loop into
``kshots`` and hands the placeholder template to the runtime::

    export function getFooPrompt(args: { foo: string }) {
      const { foo } = args
      const interpolations = {
        0: foo,
      }
      const kshots = {}
      const TEMPLATE = '{0}'
      return interpolateGlass('foo', TEMPLATE, { ...interpolations, ...kshots })
    }
"""

import logging
import re
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from decouple import config as env_config
from jinja2 import Environment, StrictUndefined
from pydantic import BaseModel, ConfigDict, Field

from .blocks import (Block, ChatRoleBlock, CodeBlock, ForLoopBlock,
                     GlassDocument, InterpolationBlock,
                     TextBlock, parse_glass_ast)
from .config import (GLASS_EXTENSION, PRINT_WIDTH, RequestConfig,
                     TranspilerConfig, default_output_directory,
                     output_file_name)
from .errors import GlassError, GlassIssue, GlassTranspileError
from .interpolation import (CODE, LOOP, IndexedEntry, index_interpolations,
                            infer_arguments, reference_root,
                            undeclared_references)
from .scanner import TagScanner

logger = logging.getLogger(__name__)

CHAT_ENTRY_POINT = "interpolateGlassChat"
PLAIN_ENTRY_POINT = "interpolateGlass"

OUTPUT_HEADER = "// THIS FILE WAS GENERATED BY GLASS -- DO NOT EDIT!"
EXPORT_OBJECT_NAME = "Glass"

RUNTIME_MODULE = env_config("GLASS_RUNTIME_MODULE", default=None)

FUNCTION_DECLARATION = re.compile(r"^(?:async\s+)?function\b[^{]*\{")

_env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)

FUNCTION_TEMPLATE = _env.from_string(
    """{% for line in imports %}{{ line }}
{% endfor %}{% if imports %}
{% endif %}{{ signature }}
{% if destructure %}  const { {{ destructure }} } = args
{% endif %}{% for line in hoisted %}{{ line }}
{% endfor %}  const interpolations = {{ interpolations }}
  const kshots = {{ kshots }}
{{ template_line }}
  return {{ entry_point }}({{ doc_id }}, TEMPLATE, { ...interpolations, ...kshots })
}"""
)

OUTPUT_FILE_TEMPLATE = _env.from_string(
    """{{ header }}

{% for line in imports %}{{ line }}
{% endfor %}{% if imports %}
{% endif %}{% for code in functions %}{{ code }}

{% endfor %}export const {{ object_name }} = {
{% for fn in exports %}  {{ fn.function_name }}: {{ fn.export_name }},
{% endfor %}}
"""
)


class GlassArgument(BaseModel):
    name: str
    type: str = "string"


class TranspiledFunction(BaseModel):
    """A compiled glass document."""

    code: str
    export_name: str = Field(alias="exportName")
    function_name: str = Field(alias="functionName")
    args: List[GlassArgument] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)
    function_code: str = ""
    is_chat: bool = False
    request: Optional[RequestConfig] = None
    errors: List[GlassIssue] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


def escape_string_literal(text: str, quote: Optional[str] = None) -> str:
    """Quote ``text`` as a single-line JavaScript string literal.

    Single quotes are preferred unless the text holds more single than
    double quotes.
    """
    if quote is None:
        quote = '"' if text.count("'") > text.count('"') else "'"
    escaped = (
        text.replace("\\", "\\\\")
        .replace(quote, "\\" + quote)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )
    return f"{quote}{escaped}{quote}"


def escape_template_literal(text: str) -> str:
    """Escape literal text for use inside a JavaScript template literal."""
    return (
        text.replace("\\", "\\\\")
        .replace("`", "\\`")
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def to_pascal_case(name: str) -> str:
    parts = [part for part in re.split(r"[^A-Za-z0-9]+", name) if part]
    return "".join(part[0].upper() + part[1:] for part in parts)


def function_names(file_name: str):
    """``(function_name, export_name)`` for a file name, e.g. ``get-foo`` -> ``getFoo``."""
    stem = file_name[: -len(GLASS_EXTENSION)] if file_name.endswith(GLASS_EXTENSION) else file_name
    if stem.startswith("get-"):
        stem = stem[len("get-") :]
    function_name = f"get{to_pascal_case(stem)}"
    return function_name, f"{function_name}Prompt"


def tidy_code(source: str) -> str:
    """Drop blank edge lines and common indentation from a code fragment."""
    lines = source.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return textwrap.dedent("\n".join(lines))


def invoke_code(source: str) -> str:
    """Wrap a code fragment so that evaluating it yields its return value."""
    code = tidy_code(source)
    declaration = FUNCTION_DECLARATION.match(code)
    if declaration:
        end = TagScanner(code).match_braces(declaration.end() - 1)
        if end == len(code):
            return f"({code})()"
    return "(() => {\n" + textwrap.indent(code, "  ") + "\n})()"


def indent_continuation(text: str, prefix: str) -> str:
    first, *rest = text.split("\n")
    return "\n".join([first] + [prefix + line if line else line for line in rest])


def render_mapping(entries: Dict[int, str]) -> str:
    if not entries:
        return "{}"
    lines = ["{"]
    for index, value in entries.items():
        lines.append(f"    {index}: {indent_continuation(value, '    ')},")
    lines.append("  }")
    return "\n".join(lines)


def loop_call(loop: ForLoopBlock, body: str) -> str:
    """Loop entry for ``kshots``; a loop missing ``each`` maps over an empty array."""
    if not loop.each.strip():
        iterable = "[]"
    elif reference_root(loop.each):
        iterable = loop.each
    else:
        iterable = f"({loop.each})"
    alias = loop.alias or "_"
    return f"{iterable}.map(({alias}) => `{body}`).join('')"


def render_loop_body(blocks: List[Block]) -> str:
    """Template literal source for one loop iteration."""
    parts = []
    for block in blocks:
        if isinstance(block, TextBlock):
            parts.append(escape_template_literal(block.text))
        elif isinstance(block, InterpolationBlock):
            parts.append("${" + block.source + "}")
        elif isinstance(block, CodeBlock):
            if not block.hoisted:
                parts.append("${" + invoke_code(block.source) + "}")
        elif isinstance(block, ChatRoleBlock):
            parts.append(escape_template_literal(block.open_tag))
            parts.append(render_loop_body(block.children))
            parts.append(escape_template_literal(block.close_tag))
        elif isinstance(block, ForLoopBlock):
            parts.append("${" + loop_call(block, render_loop_body(block.children)) + "}")
    return "".join(parts)


def render_entry(entry: IndexedEntry) -> str:
    if entry.kind == CODE:
        return invoke_code(entry.source)
    if entry.kind == LOOP:
        return loop_call(entry.block, render_loop_body(entry.block.children))
    return entry.source


def render_signature(export_name: str, arguments: Dict[str, str], typescript: bool) -> str:
    if not arguments:
        return f"export function {export_name}() {{"
    if not typescript:
        return f"export function {export_name}(args) {{"

    fields = [f"{name}: {type_name}" for name, type_name in arguments.items()]
    line = f"export function {export_name}(args: {{ {', '.join(fields)} }}) {{"
    if len(line) <= PRINT_WIDTH:
        return line
    body = "".join(f"  {field_},\n" for field_ in fields)
    return f"export function {export_name}(args: {{\n{body}}}) {{"


def render_template_line(template: str) -> str:
    literal = escape_string_literal(template)
    line = f"  const TEMPLATE = {literal}"
    if len(line) <= PRINT_WIDTH:
        return line
    return f"  const TEMPLATE =\n    {literal}"


def resolve_arguments(document: GlassDocument) -> Dict[str, str]:
    if document.frontmatter:
        return dict(document.frontmatter)
    return infer_arguments(document)


def transpile_document(document: GlassDocument, config: TranspilerConfig) -> TranspiledFunction:
    """Generate the function for an already parsed document."""
    function_name, export_name = function_names(config.file_name)
    arguments = resolve_arguments(document)
    indexed = index_interpolations(document, deduplicate=config.deduplicate)

    interpolations = {e.index: render_entry(e) for e in indexed.interpolations}
    kshots = {e.index: render_entry(e) for e in indexed.loops}
    hoisted = []
    for code in document.hoisted_code:
        tidy = tidy_code(code.source)
        if tidy:
            hoisted.extend(textwrap.indent(tidy, "  ").split("\n"))

    is_chat = document.has_chat_roles
    entry_point = CHAT_ENTRY_POINT if is_chat else PLAIN_ENTRY_POINT
    logger.debug(
        f"{config.file_name}: {len(arguments)} args, {len(interpolations)} interpolations, "
        f"{len(kshots)} loops, entry point {entry_point}"
    )

    imports = list(dict.fromkeys(document.imports))
    context = dict(
        signature=render_signature(export_name, arguments, config.is_typescript),
        destructure=", ".join(arguments),
        hoisted=hoisted,
        interpolations=render_mapping(interpolations),
        kshots=render_mapping(kshots),
        template_line=render_template_line(indexed.template),
        entry_point=entry_point,
        doc_id=escape_string_literal(config.file_name),
    )
    function_code = FUNCTION_TEMPLATE.render(imports=[], **context)
    code = FUNCTION_TEMPLATE.render(imports=imports, **context)

    request = document.request
    return TranspiledFunction(
        code=code,
        export_name=export_name,
        function_name=function_name,
        args=[GlassArgument(name=name, type=type_name) for name, type_name in arguments.items()],
        imports=imports,
        function_code=function_code,
        is_chat=is_chat,
        request=request.to_config() if request is not None else None,
        errors=list(document.errors) + undeclared_references(document),
    )


def transpile_glass_file(doc: str, config: Union[TranspilerConfig, dict]) -> TranspiledFunction:
    """Compile the text of one glass document.

    Structural problems are returned on ``TranspiledFunction.errors``.

    Raises:
        GlassFrontmatterError: the frontmatter block is malformed.
    """
    if isinstance(config, dict):
        config = TranspilerConfig(**config)
    return transpile_document(parse_glass_ast(doc), config)


def construct_glass_output_file(
    functions: List[TranspiledFunction], runtime_module: Optional[str] = RUNTIME_MODULE
) -> str:
    """Assemble one module from several compiled functions."""
    imports = []
    if runtime_module:
        imports.append(
            f"import {{ {PLAIN_ENTRY_POINT}, {CHAT_ENTRY_POINT} }} from '{runtime_module}'"
        )
    for function in functions:
        imports.extend(function.imports)

    return OUTPUT_FILE_TEMPLATE.render(
        header=OUTPUT_HEADER,
        imports=list(dict.fromkeys(imports)),
        functions=[f.function_code or f.code for f in functions],
        object_name=EXPORT_OBJECT_NAME,
        exports=functions,
    )


@dataclass
class TranspileResult:
    output_path: Path
    functions: List[TranspiledFunction]


def transpile_glass_path(path: Path, **config_overrides) -> TranspiledFunction:
    """Read and compile a single ``.glass`` file."""
    path = Path(path)
    config = TranspilerConfig.for_path(path, **config_overrides)
    try:
        return transpile_glass_file(path.read_text(encoding="utf-8"), config)
    except (GlassError, OSError) as e:
        raise GlassTranspileError(f"Could not transpile {path.name}", e, str(path))


def find_glass_files(folder: Path) -> List[Path]:
    return sorted(Path(folder).rglob(f"*{GLASS_EXTENSION}"))


def transpile_glass_directory(
    folder: Path,
    output_directory: Optional[Path] = None,
    language: Optional[str] = None,
    runtime_module: Optional[str] = RUNTIME_MODULE,
    deduplicate: bool = False,
) -> TranspileResult:
    """Compile every ``.glass`` file under ``folder`` into one output module.

    Without ``output_directory`` the module is written to ``GLASS_OUTPUT_DIR``
    relative to the working directory, as the command line does.
    """
    folder = Path(folder)
    files = find_glass_files(folder)
    logger.info(f"Transpiling {len(files)} glass files from {folder}")

    functions = [
        transpile_glass_path(
            path, workspace_folder=folder, language=language, deduplicate=deduplicate
        )
        for path in files
    ]
    for function in functions:
        for issue in function.errors:
            logger.warning(f"{function.function_name}: {issue.message}")

    output_directory = Path(output_directory or default_output_directory())
    output_directory.mkdir(parents=True, exist_ok=True)

    language = language or env_config("GLASS_LANGUAGE", default="typescript")
    output_path = output_directory / output_file_name(language)
    output_path.write_text(construct_glass_output_file(functions, runtime_module), encoding="utf-8")
    logger.info(f"Wrote {len(functions)} functions to {output_path}")
    return TranspileResult(output_path, functions)
