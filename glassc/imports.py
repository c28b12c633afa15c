"""Lifting ``import`` statements out of glass documents.

Generated functions are written one directory above the ``.glass`` sources,
so relative module specifiers are rewritten one level up.
"""

import re
from typing import List, Tuple

# import x from 'y' | import {a, b as c} from "y" | import * as ns from 'y' | import 'y'
IMPORT_PATTERN = re.compile(
    r"""import\s+(?:(?P<clause>[^'"]+?)\s+from\s+)?(?P<quote>['"])(?P<module>[^'"]+)(?P=quote)[ \t]*;?[ \t]*(?:\n|$)"""
)
BLANK_LINE = re.compile(r"[ \t]*\n")
INDENT = re.compile(r"[ \t]*")
CODE_IMPORT_LINE = re.compile(r"^[ \t]*" + IMPORT_PATTERN.pattern, re.MULTILINE)
IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")


def rewrite_module_path(module: str) -> str:
    """Move a relative specifier one directory up; bare specifiers are kept."""
    if module.startswith("./"):
        return "../" + module[2:]
    if module.startswith("../"):
        return "../" + module
    return module


def normalise_clause(clause: str) -> str:
    clause = " ".join(clause.split())

    def space_braces(match):
        names = [name.strip() for name in match.group(1).split(",") if name.strip()]
        return "{ " + ", ".join(names) + " }"

    return re.sub(r"\{([^}]*)\}", space_braces, clause)


def format_import(clause: str, module: str) -> str:
    module = rewrite_module_path(module)
    if clause:
        return f"import {normalise_clause(clause)} from '{module}'"
    return f"import '{module}'"


def imported_names(clause: str) -> List[str]:
    """Local names bound by an import clause."""
    if not clause:
        return []
    names = []
    braced = re.search(r"\{([^}]*)\}", clause)
    if braced:
        for part in braced.group(1).split(","):
            part = part.strip()
            if not part:
                continue
            local = part.split(" as ")[-1].strip()
            if IDENTIFIER.match(local):
                names.append(local)
        clause = clause[: braced.start()] + clause[braced.end() :]
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            part = part.split(" as ")[-1].strip()
        if IDENTIFIER.match(part):
            names.append(part)
    return names


def lift_leading_imports(text: str, start: int = 0) -> Tuple[List[str], List[str], int]:
    """Consume import lines at ``start``, skipping blank lines between them.

    Returns:
        (imports, names, end) with rewritten import statements, the names
        they bind and the offset where the remaining content starts.
    """
    imports: List[str] = []
    names: List[str] = []
    pos = start
    end = start
    while True:
        cursor = pos
        while True:
            blank = BLANK_LINE.match(text, cursor)
            if not blank or blank.end() == cursor:
                break
            cursor = blank.end()
        indent = INDENT.match(text, cursor).end()
        match = IMPORT_PATTERN.match(text, indent)
        if match is None:
            break
        clause = (match.group("clause") or "").strip()
        imports.append(format_import(clause, match.group("module")))
        names.extend(imported_names(clause))
        pos = end = match.end()
    return imports, names, end


def extract_code_imports(code: str) -> Tuple[str, List[str], List[str]]:
    """Remove every import line from a code fragment."""
    imports: List[str] = []
    names: List[str] = []
    for match in CODE_IMPORT_LINE.finditer(code):
        clause = (match.group("clause") or "").strip()
        imports.append(format_import(clause, match.group("module")))
        names.extend(imported_names(clause))
    return CODE_IMPORT_LINE.sub("", code), imports, names
