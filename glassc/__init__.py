"""glassc -- compile glass prompt documents into TypeScript/JavaScript functions."""

import logging

# Version - reads from package metadata (set in pyproject.toml)
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("glassc")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

logger = logging.getLogger(__name__)

from .blocks import (ChatRole, ChatRoleBlock, CodeBlock, ForLoopBlock,
                     GlassDocument, InterpolationBlock, RequestBlock,
                     TextBlock, parse_glass_ast)
from .config import RequestConfig, TranspilerConfig
from .diagnostics import (Diagnostic, find_unmatched_tags,
                          find_unsupported_tags, get_diagnostics)
from .errors import (GlassError, GlassFrontmatterError, GlassIssue,
                     GlassTranspileError)
from .folding import FoldingRange, find_foldable_tag_pairs, get_folding_ranges
from .frontmatter import parse_frontmatter, split_frontmatter
from .interpolation import (IndexedTemplate, index_interpolations,
                            infer_arguments)
from .scanner import (SUPPORTED_TAGS, BraceRegion, LexicalError, Tag,
                      TagScanner, match_tags, scan, scan_tags)
from .transpile import (TranspiledFunction, construct_glass_output_file,
                        transpile_glass_directory, transpile_glass_file,
                        transpile_glass_path)
