"""Text completion for tag and research-proposal generation.

The rest of the package only depends on the :class:`TextCompleter` protocol;
:class:`AnthropicCompleter` is the production implementation.
"""

import json
import logging
import os
import re
from typing import TYPE_CHECKING, Optional, Protocol

from paperscout.config import DEFAULT_LLM_MODEL
from paperscout.errors import LLMError
from paperscout.models import Paper, dedupe_preserving_order

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)

MAX_TAGS = 5

TAG_SYSTEM_PROMPT = "You are an assistant that helps classify academic papers."

TAG_PROMPT = """\
Suggest 3-5 short topical tags for the following paper. \
Reply with the tags only, separated by commas.

Title: {title}
Abstract: {abstract}

Tags (comma separated):"""

PROPOSAL_SYSTEM_PROMPT = (
    "You are a research advisor. You read sets of papers and propose new, "
    "concrete research directions that build on them."
)

PROPOSAL_PROMPT = """\
Analyze the papers below and propose one new research theme that combines or \
extends them. Also list open problems the papers leave unanswered.

Respond with a JSON object only, in this shape:
{{"title": "...", "description": "...", "open_problems": ["...", "..."]}}

Papers:
{papers}"""

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class TextCompleter(Protocol):
    """Anything that turns a system + user prompt into text."""

    def complete(self, system_prompt: str, user_prompt: str) -> str: ...


class AnthropicCompleter:
    """TextCompleter backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_LLM_MODEL,
        max_tokens: int = 1024,
        client: Optional["anthropic.Anthropic"] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        if client is not None:
            self._client = client
            return

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package required for AI features. "
                "Install with: pip install paperscout[llm]"
            )

        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError(
                "Anthropic API key required. "
                "Set ANTHROPIC_API_KEY env var or pass api_key parameter."
            )
        self._client = anthropic.Anthropic(api_key=api_key)

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.0,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as e:  # noqa: BLE001
            raise LLMError(f"Text completion failed: {e}") from e
        if not response.content:
            raise LLMError("Text completion returned no content")
        return response.content[0].text.strip()


def build_tag_prompt(paper: Paper) -> str:
    return TAG_PROMPT.format(title=paper.title, abstract=paper.abstract or "(no abstract)")


def parse_tags(text: str, max_tags: int = MAX_TAGS) -> list[str]:
    """Split an LLM reply on commas (ASCII or ideographic) into at most ``max_tags`` tags."""
    tags = [t.strip().strip("#").strip() for t in re.split(r"[,、\n]", text or "")]
    return dedupe_preserving_order([t for t in tags if t])[:max_tags]


def build_proposal_prompt(papers: list[Paper]) -> str:
    blocks = []
    for i, paper in enumerate(papers, 1):
        authors = ", ".join(paper.authors[:5]) or "Unknown"
        abstract = paper.abstract or "(no abstract)"
        blocks.append(f"[{i}] {paper.title}\nAuthors: {authors}\nAbstract: {abstract}")
    return PROPOSAL_PROMPT.format(papers="\n\n".join(blocks))


def parse_proposal(text: str) -> dict:
    """Parse the proposal JSON, tolerating a surrounding ```json fence.

    Returns:
        Dict with "title", "description" and "open_problems" (list of str)

    Raises:
        LLMError: if the reply is not a JSON object with a title and description
    """
    body = (text or "").strip()
    fenced = _FENCE.match(body)
    if fenced:
        body = fenced.group(1)

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise LLMError(f"Proposal reply is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not data.get("title") or not data.get("description"):
        raise LLMError("Proposal reply lacks a title or description")

    problems = data.get("open_problems") or []
    if isinstance(problems, str):
        problems = [problems]
    return {
        "title": str(data["title"]).strip(),
        "description": str(data["description"]).strip(),
        "open_problems": [str(p).strip() for p in problems if str(p).strip()],
    }


def completer_from_settings(settings) -> Optional[AnthropicCompleter]:
    """AnthropicCompleter when a key is configured and anthropic is installed, else None."""
    if not settings.anthropic_api_key:
        return None
    try:
        return AnthropicCompleter(api_key=settings.anthropic_api_key, model=settings.llm_model)
    except ImportError as e:
        logger.warning("AI features disabled: %s", e)
        return None
