"""Best-effort infobox extraction from raw wiki markup.

This is not a wikitext parser. It knows enough about templates, links and
tags to turn the infobox of a typical nature-place article into a flat
mapping of lower-cased field names to readable text:

    {{Infobox Lac
     | nom = Lac d'Annecy
     | superficie = {{unité|27.59|km|2}}
     | pays = {{FRA}}
    }}

    -> {"nom": "Lac d'Annecy", "superficie": "27.59 km²", "pays": "France"}

Steps:
1. Find the first infobox opener (`{{Infobox Name`, `{{Infobox|`, `{{Infobox\\n`).
2. Find its closer by counting double-brace depth.
3. Split the body into logical lines (newlines and top-level pipes) and
   accumulate `| key = value` fields, with continuation lines appended.
4. Clean every value: nested templates are rendered pass after pass until
   none are left (bounded by MAX_TEMPLATE_PASSES), then links, tags and
   whitespace are normalized.

Malformed input never raises. Unbalanced templates are left in place and
any internal failure is reported as "no infobox".

Usage:
------
from placebot.parsing.wiki_markup import extract_infobox

facts = extract_infobox(revision_markup)
if facts:
    print(facts.get("altitude"))
"""

import re
from typing import Dict, List, Optional, Tuple

from placebot.utils.logger import LoggerManager

logger = LoggerManager.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Tried in order, first match wins
INFOBOX_OPENERS = [
    re.compile(r"\{\{\s*Infobox[ _]+[^|\n{}]+", re.IGNORECASE),
    re.compile(r"\{\{\s*Infobox\s*\|", re.IGNORECASE),
    re.compile(r"\{\{\s*Infobox\s*\n", re.IGNORECASE),
]

MAX_TEMPLATE_PASSES = 10

UNIT_TEMPLATES = {"unité", "unite", "unit", "nombre", "nb"}

FLAG_TEMPLATES = {
    "drapeau", "drapeau2", "drapeau3", "drapeaudelapays",
    "flag", "flagcountry", "flagicon", "pays", "country",
}

NATIONALITY_CODES = {
    "FRA": "France",
    "FR": "France",
    "ITA": "Italie",
    "ESP": "Espagne",
    "CHE": "Suisse",
    "SUI": "Suisse",
    "BEL": "Belgique",
    "DEU": "Allemagne",
    "GER": "Allemagne",
    "LUX": "Luxembourg",
    "MCO": "Monaco",
    "AND": "Andorre",
    "GBR": "Royaume-Uni",
    "USA": "États-Unis",
}

FILE_NAMESPACES = ("fichier:", "file:", "image:")

_SUPERSCRIPTS = str.maketrans("0123456789-", "⁰¹²³⁴⁵⁶⁷⁸⁹⁻")

_EXPONENT = re.compile(r"^-?\d+$")
_STRICT_FIELD = re.compile(r"^\|\s*([\w][\w \-]*?)\s*=(.*)$", re.DOTALL)
_LENIENT_FIELD = re.compile(r"^\|?\s*([^=|{}\[\]<>]+?)\s*=(.*)$", re.DOTALL)

_COMMENT = re.compile(r"<!--.*?(-->|$)", re.DOTALL)
_REF_BLOCK = re.compile(r"<ref[^>/]*>.*?</ref\s*>", re.IGNORECASE | re.DOTALL)
_REF_SELF_CLOSING = re.compile(r"<ref[^>]*/>", re.IGNORECASE)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"</?[a-zA-Z][^<>]*>")
_WIKI_LINK = re.compile(r"\[\[([^\[\]]*)\]\]")
_EXTERNAL_LINK = re.compile(r"\[(?:https?:)?//[^\s\]]+(?:\s+([^\]]*))?\]")
_EMPHASIS = re.compile(r"'{2,}")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Balanced scanning
# =============================================================================


def find_template_end(text: str, start: int) -> Optional[int]:
    """Index just past the `}}` closing the template opened at `start`.

    Depth starts at 2 for the outer `{{`; every `{{` adds 2 and every `}}`
    removes 2. Returns None when the template is never closed.
    """
    depth = 2
    i = start + 2
    length = len(text)
    while i < length:
        if text.startswith("{{", i):
            depth += 2
            i += 2
        elif text.startswith("}}", i):
            depth -= 2
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return None


def split_top_level(text: str, separators: str = "|") -> List[Tuple[str, str]]:
    """Split `text` on separators that are not inside templates or links.

    Returns (separator, piece) pairs. The first piece has an empty separator.
    """
    pieces: List[Tuple[str, str]] = []
    braces = 0
    brackets = 0
    current: List[str] = []
    lead = ""
    i = 0
    length = len(text)
    while i < length:
        two = text[i:i + 2]
        if two == "{{":
            braces += 1
            current.append(two)
            i += 2
            continue
        if two == "}}" and braces:
            braces -= 1
            current.append(two)
            i += 2
            continue
        if two == "[[":
            brackets += 1
            current.append(two)
            i += 2
            continue
        if two == "]]" and brackets:
            brackets -= 1
            current.append(two)
            i += 2
            continue
        char = text[i]
        if char in separators and not braces and not brackets:
            pieces.append((lead, "".join(current)))
            lead = char
            current = []
        else:
            current.append(char)
        i += 1
    pieces.append((lead, "".join(current)))
    return pieces


def find_infobox_span(markup: str) -> Optional[Tuple[int, int]]:
    """Start and end offsets of the first infobox template, or None."""
    for pattern in INFOBOX_OPENERS:
        match = pattern.search(markup)
        if match:
            end = find_template_end(markup, match.start())
            if end is None:
                return None
            return match.start(), end
    return None


# =============================================================================
# Template rendering
# =============================================================================


def _template_arguments(inner: str) -> Tuple[str, List[str]]:
    """Template name and its positional arguments (named ones are dropped)."""
    parts = [piece for _, piece in split_top_level(inner)]
    name = parts[0].strip()
    positional: List[str] = []

    # Parser functions carry their first argument after a colon
    if ":" in name and not name.startswith(":"):
        func, first = name.split(":", 1)
        if func and " " not in func.strip():
            name = func.strip()
            positional.append(first.strip())

    for arg in parts[1:]:
        head, sep, _ = arg.partition("=")
        if sep and "{{" not in head and "[[" not in head and head.strip():
            continue
        positional.append(arg.strip())
    return name, positional


def _render_unit(args: List[str]) -> str:
    if not args:
        return ""
    rendered = args[0]
    has_unit = False
    for arg in args[1:]:
        if not arg:
            continue
        if has_unit and _EXPONENT.match(arg):
            rendered += arg.translate(_SUPERSCRIPTS)
        else:
            rendered += f" {arg}"
            has_unit = True
    return rendered


def render_template(inner: str) -> str:
    """Readable text for one template, given the text between its braces."""
    name, args = _template_arguments(inner)
    key = name.lower()

    if key in UNIT_TEMPLATES:
        return _render_unit(args)
    if not args and name.upper() in NATIONALITY_CODES and name.isupper():
        return NATIONALITY_CODES[name.upper()]
    if key in FLAG_TEMPLATES and args:
        return NATIONALITY_CODES.get(args[0].upper(), args[0])
    if len(args) == 2:
        return args[1]
    if args:
        return args[0]
    return name


def resolve_templates(text: str, max_passes: int = MAX_TEMPLATE_PASSES) -> str:
    """Replace every balanced template with its rendering, pass after pass.

    Each pass renders the outermost templates it meets. Arguments that still
    contain templates are handled by the next pass. Unbalanced `{{` are left
    as they are.
    """
    for _ in range(max_passes):
        out: List[str] = []
        i = 0
        replaced = False
        while True:
            start = text.find("{{", i)
            if start == -1:
                out.append(text[i:])
                break
            end = find_template_end(text, start)
            if end is None:
                out.append(text[i:])
                break
            out.append(text[i:start])
            out.append(render_template(text[start + 2:end - 2]))
            replaced = True
            i = end
        text = "".join(out)
        if not replaced:
            break
    return text


# =============================================================================
# Value cleaning
# =============================================================================


def _render_link(match: re.Match) -> str:
    body = match.group(1)
    target, _, label = body.partition("|")
    if target.strip().lower().startswith(FILE_NAMESPACES):
        return ""
    if label:
        return label.rsplit("|", 1)[-1]
    return target.lstrip(":")


def clean_value(raw: str) -> str:
    """Turn a raw infobox value into plain text."""
    text = _REF_BLOCK.sub("", raw)
    text = _REF_SELF_CLOSING.sub("", text)
    text = resolve_templates(text)
    text = _WIKI_LINK.sub(_render_link, text)
    text = _EXTERNAL_LINK.sub(lambda m: m.group(1) or "", text)
    text = _LINE_BREAK.sub(" ", text)
    text = _ANY_TAG.sub("", text)
    text = _EMPHASIS.sub("", text)
    text = text.replace("&nbsp;", " ")
    return _WHITESPACE.sub(" ", text).strip()


def _normalize_key(key: str) -> str:
    return _WHITESPACE.sub("_", key.strip().lower())


# =============================================================================
# Field accumulation
# =============================================================================


def _logical_lines(body: str) -> List[str]:
    """Physical lines, further broken at top-level pipes (pipe kept as prefix)."""
    lines = []
    for separator, piece in split_top_level(body, separators="|\n"):
        prefix = "|" if separator == "|" else ""
        lines.append(prefix + piece)
    return lines


def _match_field(line: str) -> Optional[Tuple[str, str]]:
    stripped = line.strip()
    match = _STRICT_FIELD.match(stripped)
    if not match and stripped.startswith("|") and "=" in stripped:
        match = _LENIENT_FIELD.match(stripped)
    if not match:
        return None
    key = _normalize_key(match.group(1))
    if not key:
        return None
    return key, match.group(2).strip()


def parse_fields(body: str) -> Dict[str, str]:
    """Accumulate raw `key -> value` pairs from an infobox body."""
    fields: Dict[str, str] = {}
    current: Optional[str] = None
    for line in _logical_lines(body):
        field = _match_field(line)
        if field:
            current, value = field
            fields[current] = value
            continue
        continuation = line.strip().lstrip("|").strip()
        if current is not None and continuation:
            fields[current] = f"{fields[current]} {continuation}".strip()
    return fields


def extract_infobox(markup: Optional[str]) -> Optional[Dict[str, str]]:
    """Extract the first infobox of an article as a flat mapping.

    Args:
        markup: Raw markup of the article's latest revision

    Returns:
        Field name -> cleaned value, or None when there is no (usable) infobox
    """
    if not markup:
        return None
    try:
        text = _COMMENT.sub("", markup)
        span = find_infobox_span(text)
        if span is None:
            return None
        start, end = span
        body = text[start + 2:end - 2]

        infobox: Dict[str, str] = {}
        for key, raw in parse_fields(body).items():
            value = clean_value(raw)
            if value:
                infobox[key] = value
        return infobox or None
    except Exception as e:
        logger.warning(
            "infobox.parse.fail",
            extra={"extra_data": {"error": f"{type(e).__name__}: {e}"}},
        )
        return None
