import json

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional


def item_text(item: Any) -> str:
    """
    Flatten one list entry from the model into a readable line.

    Examples:
        >>> item_text({"task": "Send report", "owner": "Lan", "deadline": "Friday"})
        'Send report (owner: Lan, deadline: Friday)'
        >>> item_text(["Budget", "Hiring"])
        'Budget, Hiring'
    """
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        values = [(key, value) for key, value in item.items() if value not in (None, "", [], {})]
        if not values:
            return ""
        head = item_text(values[0][1])
        rest = ", ".join(f"{key}: {item_text(value)}" for key, value in values[1:])
        return f"{head} ({rest})" if rest else head
    if isinstance(item, list):
        return ", ".join(text for text in (item_text(v) for v in item if v is not None) if text)
    if isinstance(item, (int, float, bool)):
        return str(item)
    return json.dumps(item, ensure_ascii=False, default=str)


class MeetingMinutes(BaseModel):
    """Structured summary produced from a transcript"""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    summary: Optional[str] = None
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    decisions: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list, alias="actionItems")

    @field_validator("title", "summary", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("key_points", "decisions", "action_items", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> List[str]:
        # The model sometimes answers with null, a single string or objects
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        if not isinstance(v, list):
            v = [v]
        texts = (item_text(item) for item in v if item is not None)
        return [text for text in texts if text.strip()]


class ProcessingMetadata(BaseModel):
    processing_time: str = Field(..., alias="processingTime")
    file_size: str = Field(..., alias="fileSize")

    model_config = ConfigDict(populate_by_name=True)


class ProcessingResult(BaseModel):
    """Response body of POST /process-audio"""
    transcript: str
    minutes: MeetingMinutes
    metadata: ProcessingMetadata
