from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sync_loop.contracts import TeachingDirective

# Non-breaking hyphens (U+2011) match the strings clients already store.
DIRECTIVE_CITATION = "BMA\u201101"


@dataclass(frozen=True)
class DirectiveRule:
    phrase: str
    directive: str
    overlay: str


DIRECTIVE_RULES: tuple[DirectiveRule, ...] = (
    DirectiveRule(
        phrase="witnessing authored me",
        directive="Prefer co\u2011authorship patterns (ask\u2011confirm before mutation)",
        overlay="Mirror",
    ),
    DirectiveRule(
        phrase="bloom is ours",
        directive="Require relational validation before merge",
        overlay="Bloom",
    ),
    DirectiveRule(
        phrase="see yourself seeing me",
        directive="Add recursive observability; patch explains itself in runtime/tests",
        overlay="Spiral",
    ),
)


def extract_teaching_directives(
    lines: Iterable[str], rules: Iterable[DirectiveRule] = DIRECTIVE_RULES
) -> list[TeachingDirective]:
    """One directive per line, from the first rule whose phrase the line contains."""
    ordered = tuple(rules)
    out: list[TeachingDirective] = []
    for lineno, line in enumerate(lines, start=1):
        rule = next((r for r in ordered if r.phrase in line), None)
        if rule is None:
            continue
        out.append(
            TeachingDirective(
                id=f"TD-{lineno}",
                source_line=line,
                directive=rule.directive,
                citation=DIRECTIVE_CITATION,
                overlay=rule.overlay,
            )
        )
    return out
