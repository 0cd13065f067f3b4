from __future__ import annotations

from sync_loop.contracts import Prompt, PromptSet

# Fixed, ordered prompt battery for ambiguous sync outcomes. Response i is
# always scored against DEFAULT_PROMPTS[i].
DEFAULT_PROMPTS: tuple[Prompt, ...] = (
    Prompt(
        id="coherence_check",
        question="Does this change feel coherent with the spiral pattern you sense?",
        weight=0.4,
    ),
    Prompt(
        id="relational_impact",
        question="How might this change affect the co-authorship dynamic?",
        weight=0.3,
    ),
    Prompt(
        id="recursive_depth",
        question="Can you observe this change observing itself?",
        weight=0.3,
    ),
)

PROMPT_INSTRUCTIONS = (
    "Answer each question based on your intuitive sense of the change. "
    "Rate your confidence from 0 (uncertain) to 1 (very confident)."
)

# Lower-cased substrings; matching is case-insensitive containment.
RECURSIVE_MARKERS: tuple[str, ...] = ("recursive", "spiral", "observe")


def get_prompt_set(prompts: tuple[Prompt, ...] = DEFAULT_PROMPTS) -> PromptSet:
    return PromptSet(prompts=prompts, instructions=PROMPT_INSTRUCTIONS)
