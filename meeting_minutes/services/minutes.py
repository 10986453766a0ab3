import json
import re
from typing import Any, Optional

import structlog
from groq import Groq, RateLimitError

from meeting_minutes.core.config import GROQ_API_KEY, LLM_MODEL, MAX_OUTPUT_TOKENS, MEETING_LANGUAGE
from meeting_minutes.core.errors import ParseError, UpstreamError
from meeting_minutes.schemas.minutes import MeetingMinutes

logger = structlog.get_logger(__name__)

MINUTES_SYSTEM_PROMPT = """You are an expert meeting-minutes writer. You turn raw meeting transcripts into concise, structured minutes.

Apply the 80/20 rule to separate signal from noise.

KEEP (the 20% of content that carries 80% of the value):
- Decisions that were made, with their context
- Action items, with owners and deadlines when they are mentioned
- Important discussions and the conclusions they reached
- Problems raised and the solutions agreed on

DROP:
- Small talk and pleasantries
- Repetition and restatements
- Off-topic tangents and filler

For long meetings, make sure every major topic, decision and action item from the whole meeting is captured, not only the beginning.

OUTPUT FORMAT (strict):
Reply with ONLY a JSON object, no text before or after it:
{
  "title": "Short descriptive meeting title",
  "summary": "Two or three sentences capturing the essence of the meeting",
  "keyPoints": ["point 1", "point 2"],
  "decisions": ["decision 1", "decision 2"],
  "actionItems": ["action 1", "action 2"]
}
Use an empty list when a section has nothing to report.
"""

FENCE_PATTERN = re.compile(r"^```[ \t]*(?:json)?[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL | re.IGNORECASE)


def build_user_prompt(transcript: str, language: str = MEETING_LANGUAGE) -> str:
    return (
        f"Write the meeting minutes in {language}.\n\n"
        f"Transcript:\n{transcript}\n\n"
        "Provide ONLY the JSON object."
    )


def strip_code_fence(text: str) -> str:
    """
    Remove a markdown code fence around a reply, if there is one.

    Examples:
        >>> strip_code_fence('```json\\n{"title": "x"}\\n```')
        '{"title": "x"}'
        >>> strip_code_fence('{"title": "x"}')
        '{"title": "x"}'
    """
    stripped = text.strip()
    match = FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_minutes_reply(text: Optional[str]) -> MeetingMinutes:
    """Parse the model's reply into MeetingMinutes or raise ParseError."""
    if not text or not text.strip():
        raise ParseError("Empty reply from the summarization model")

    try:
        data: Any = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse meeting minutes JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    return MeetingMinutes.model_validate(data)


def reply_content(completion: Any) -> Optional[str]:
    """Text of the first choice, or None when the completion carries none."""
    choices = getattr(completion, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


class MinutesGenerator:
    """Summarizes a transcript into MeetingMinutes with a Groq chat model."""

    def __init__(
        self,
        client: Optional[Groq] = None,
        model: str = LLM_MODEL,
        language: str = MEETING_LANGUAGE,
        max_tokens: int = MAX_OUTPUT_TOKENS,
    ):
        self.client = client if client is not None else Groq(api_key=GROQ_API_KEY)
        self.model = model
        self.language = language
        self.max_tokens = max_tokens

    def summarize(self, transcript: str) -> MeetingMinutes:
        try:
            completion = self.client.chat.completions.create(
                messages=[
                    {"role": "system", "content": MINUTES_SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(transcript, self.language)},
                ],
                model=self.model,
                temperature=0.2,
                max_tokens=self.max_tokens,
            )
        except RateLimitError as e:
            raise UpstreamError(f"Failed to generate meeting minutes: {e}", quota_exceeded=True) from e
        except Exception as e:
            raise UpstreamError(f"Failed to generate meeting minutes: {e}") from e

        minutes = parse_minutes_reply(reply_content(completion))
        logger.info(
            "minutes_generated",
            key_points=len(minutes.key_points),
            decisions=len(minutes.decisions),
            action_items=len(minutes.action_items),
        )
        return minutes
