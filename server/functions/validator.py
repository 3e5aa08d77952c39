# --- Output Validation ---
import re
from typing import List, Tuple

from models.convert_models import ValidationResult

# (pattern, violation) pairs that must NOT match
FORBIDDEN_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"<html[\s>]", re.IGNORECASE), "Contains forbidden <html> tag"),
    (re.compile(r"<head[\s>]", re.IGNORECASE), "Contains forbidden <head> tag"),
    (re.compile(r"<body[\s>]", re.IGNORECASE), "Contains forbidden <body> tag"),
    (re.compile(r"```"), "Contains code fence markers (```)"),
)

# (pattern, violation) pairs that must match at least once
REQUIRED_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"<section", re.IGNORECASE), "Missing <section> tags for content blocks"),
    (re.compile(r"<h[23]", re.IGNORECASE), "Missing heading tags (h2/h3)"),
)


def validate_html_output(html: str) -> ValidationResult:
    """
    Check a generated HTML fragment against the structural rules.
    Every failed rule is reported, in rule order.
    """
    text = html or ""
    violations: List[str] = []

    for pattern, message in FORBIDDEN_PATTERNS:
        if pattern.search(text):
            violations.append(message)

    for pattern, message in REQUIRED_PATTERNS:
        if not pattern.search(text):
            violations.append(message)

    return ValidationResult(valid=not violations, violations=violations)
