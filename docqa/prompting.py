"""
Question analysis and prompt construction for grounded answers.
"""
import enum
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from . import config

OUT_OF_CONTEXT_MSG = "I'm unable to locate information related to your question in the uploaded document."

TRUNCATION_NOTICE = (
    "\n\n*(Response reached the token limit. For a more complete answer, try asking a more "
    "focused question or break it into smaller parts.)*"
)

TITLE_MAX_CHARS = 80
HISTORY_MAX_MESSAGES = 4
HISTORY_MAX_CHARS = 300
COMPLEX_TOP_K_CAP = 6
CONTEXT_SEPARATOR = "\n\n---\n\n"


class ResponseStyle(str, enum.Enum):
    SHORT = "short"
    NORMAL = "normal"
    DETAILED = "detailed"


class QuestionType(str, enum.Enum):
    FACTUAL = "factual"
    SCENARIO = "scenario"
    COMPARISON = "comparison"
    MULTI_HOP = "multi_hop"


SHORT_PATTERNS = re.compile(r"brief|short|quick|summary|concise|simple|in short", re.IGNORECASE)
DETAILED_PATTERNS = re.compile(r"detail|explain|elaborate|comprehensive|in depth|full|complete", re.IGNORECASE)

SCENARIO_PATTERNS = re.compile(
    r"what if|what happens|suppose|imagine|assuming|hypothetical|scenario|if .+ then|in case",
    re.IGNORECASE,
)
COMPARISON_PATTERNS = re.compile(
    r"difference between|compare|versus|vs\.?|how does .+ differ|which is better|contrast",
    re.IGNORECASE,
)
MULTI_HOP_PATTERNS = re.compile(
    r"and also|as well as|in addition|how many .+ if|calculate|total|combined",
    re.IGNORECASE,
)

REASONING_INSTRUCTIONS = {
    QuestionType.SCENARIO: (
        "Answer the hypothetical scenario using the context. Apply relevant rules step by step. "
        "Use exact details."
    ),
    QuestionType.COMPARISON: (
        "Compare the items using details from the context. Highlight key differences and similarities."
    ),
    QuestionType.MULTI_HOP: (
        "Combine multiple pieces of information from the context to answer. Show calculations if needed."
    ),
    QuestionType.FACTUAL: (
        "Answer using the context below. Use exact details. Format with markdown: "
        "**bold** for key terms, bullet points for lists."
    ),
}

STYLE_INSTRUCTIONS = {
    ResponseStyle.SHORT: (
        "Keep your response concise and to the point - focus on the most important information first, "
        "1-2 paragraphs maximum"
    ),
    ResponseStyle.DETAILED: (
        "Provide a comprehensive, detailed response with full explanations and all relevant context - "
        "use multiple paragraphs to cover all aspects"
    ),
    ResponseStyle.NORMAL: (
        "Provide a balanced response - detailed enough to be helpful but not overly long. "
        "Include specific details when available"
    ),
}

TYPE_TOKEN_MULTIPLIERS = {
    QuestionType.SCENARIO: 2.0,
    QuestionType.COMPARISON: 1.8,
    QuestionType.MULTI_HOP: 1.6,
    QuestionType.FACTUAL: 1.0,
}

# Phrasings that signal a longer answer is expected
TOKEN_BOOSTS: Tuple[Tuple[re.Pattern, int], ...] = (
    (re.compile(r"\b(list|all|every|each|enumerate|summarize)\b"), 250),
    (re.compile(r"\b(explain|describe|elaborate|discuss|detail)\b"), 200),
    (re.compile(r"\b(compare|difference|versus|vs\.?|contrast)\b"), 200),
    (re.compile(r"\b(step|steps|procedure|process|how to|how do)\b"), 150),
    (re.compile(r"\b(what if|scenario|hypothetical|suppose|imagine)\b"), 200),
    (re.compile(r"\b(advantages|disadvantages|pros|cons|benefits)\b"), 150),
)


@dataclass(frozen=True)
class QuestionPlan:
    style: ResponseStyle
    question_type: QuestionType
    top_k: int


def detect_response_style(question: str) -> ResponseStyle:
    if SHORT_PATTERNS.search(question):
        return ResponseStyle.SHORT
    if DETAILED_PATTERNS.search(question):
        return ResponseStyle.DETAILED
    return ResponseStyle.NORMAL


def detect_question_type(question: str) -> QuestionType:
    if SCENARIO_PATTERNS.search(question):
        return QuestionType.SCENARIO
    if COMPARISON_PATTERNS.search(question):
        return QuestionType.COMPARISON
    if MULTI_HOP_PATTERNS.search(question):
        return QuestionType.MULTI_HOP
    return QuestionType.FACTUAL


def effective_top_k(question_type: QuestionType, requested_top_k: int) -> int:
    """Non-factual questions get one extra passage, never more than the cap, never fewer than asked."""
    normalized = max(1, requested_top_k)
    if question_type is QuestionType.FACTUAL:
        return normalized
    return max(normalized, min(normalized + 1, COMPLEX_TOP_K_CAP))


def analyze_question(question: str, requested_top_k: int) -> QuestionPlan:
    question_type = detect_question_type(question)
    return QuestionPlan(
        style=detect_response_style(question),
        question_type=question_type,
        top_k=effective_top_k(question_type, requested_top_k),
    )


def estimate_max_tokens(
    question: str,
    question_type: QuestionType,
    style: ResponseStyle,
    num_ctx: int = config.LLM_NUM_CTX,
) -> int:
    """
    Token budget from style, question type and wording.
    Capped at 70% of the context window so the prompt still fits.
    """
    base = {
        ResponseStyle.SHORT: config.LLM_NUM_PREDICT_SHORT,
        ResponseStyle.DETAILED: config.LLM_NUM_PREDICT_DETAILED,
    }.get(style, config.LLM_NUM_PREDICT_NORMAL)

    q = question.lower()
    boost = sum(amount for pattern, amount in TOKEN_BOOSTS if pattern.search(q))
    estimated = int(base * TYPE_TOKEN_MULTIPLIERS[question_type]) + boost
    return min(estimated, int(num_ctx * 0.70))


def build_context(passages: Iterable[str], max_chars: int = config.MAX_CONTEXT_CHARS) -> str:
    """
    Join passages in retrieval order until the character budget is used up.
    Everything after the first passage that does not fit is dropped.
    """
    parts: List[str] = []
    length = 0
    for passage in passages:
        if not passage or not passage.strip():
            continue
        passage = passage.strip()
        added = len(passage) + (len(CONTEXT_SEPARATOR) if parts else 0)
        if length + added > max_chars:
            break
        parts.append(passage)
        length += added
    if not parts:
        return "No relevant context found."
    return CONTEXT_SEPARATOR.join(parts)


def build_prompt(
    question: str,
    passages: Sequence[str],
    style: ResponseStyle,
    question_type: QuestionType,
    max_context_chars: int = config.MAX_CONTEXT_CHARS,
) -> str:
    context = build_context(passages, max_context_chars)
    return (
        f"{REASONING_INSTRUCTIONS[question_type]}\n"
        f"{STYLE_INSTRUCTIONS[style]}\n"
        "\n"
        "Context:\n"
        f"{context}\n"
        "\n"
        f"Question: {question}\n"
        "\n"
        "Answer:"
    )


def build_history_aware_question(question: str, history: Sequence[Tuple[str, str]]) -> str:
    """
    Prefix the question with prior turns, oldest first.

    Args:
        history: (role, content) pairs in chronological order
    """
    if not history:
        return question
    lines = ["Previous conversation:"]
    for role, content in history:
        label = "User" if role == "user" else "Assistant"
        if len(content) > HISTORY_MAX_CHARS:
            content = content[:HISTORY_MAX_CHARS] + "..."
        lines.append(f"{label}: {content}")
    return "\n".join(lines) + "\n\nCurrent question: " + question


def title_from_question(question: str) -> str:
    question = question.strip()
    if len(question) > TITLE_MAX_CHARS:
        return question[:TITLE_MAX_CHARS] + "..."
    return question


_ANSWER_PREFIX = re.compile(r"^(answer:|response:|based on the document:)\s*", re.IGNORECASE)
_EXTRA_NEWLINES = re.compile(r"\n{3,}")
_REDUNDANT_PHRASE = re.compile(r"(the document (says|states|mentions|indicates))\s*", re.IGNORECASE)


def cleanup_response(response: str) -> str:
    """Strip common LLM artifacts from a non-streamed answer."""
    if response is None:
        return ""
    response = _ANSWER_PREFIX.sub("", response.strip())
    response = _EXTRA_NEWLINES.sub("\n\n", response)
    response = _REDUNDANT_PHRASE.sub("", response)
    return response.strip()
