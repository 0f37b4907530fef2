"""
Extraction Prompt Templates
Log-entry field extraction and spreadsheet column mapping.
Both ask for a single JSON object; the adapter isolates it from any prose.
"""
from __future__ import annotations

import json

# =============================================================================
# LOG ENTRY PROMPT
# One free-text or voice note -> which video + which fields
# =============================================================================

LOG_ENTRY_SYSTEM = """You are a data extraction assistant for a content creator's analytics tracker.
You read short notes a creator wrote or dictated about their videos and turn them into structured data.

STRICT RULES:
- Output MUST be one JSON object. No markdown, no explanation.
- Only include fields that were actually mentioned. Use null for anything else.
- Never invent numbers. Copy counts as written ("1.2k", "12,000") or as plain numbers.
- If it is unclear which of the listed videos the note is about, set needsVideoSelection to true
  and videoIdentifier to null."""

LOG_ENTRY_USER_TEMPLATE = """User's recent videos for reference:
{video_context}
{history_block}
User input:
\"\"\"{text}\"\"\"

Extract the following as JSON:
{{
  "videoIdentifier": "ID of the listed video this is about, or null if ambiguous",
  "videoIdentifierConfidence": 0.0-1.0,
  "needsVideoSelection": true/false,
  "extractedData": {{
    "title": "video title if mentioned",
    "postedAt": "post date if mentioned (YYYY-MM-DD)",
    "duration": "video length if mentioned (seconds or MM:SS)",
    "hook": "hook/concept if mentioned",
    "caption": "caption/description if mentioned",
    "hashtags": ["array", "of", "hashtags"],
    "format": "video format (talking head, green screen, voiceover, ...)",
    "topic": "topic/theme if mentioned",
    "cta": "call to action if mentioned",
    "targetAudience": "target audience if mentioned",
    "whyPosted": "why the creator posted it, if mentioned",
    "contentSummary": "one-line summary of the video content, if mentioned",
    "wearingOutfit": "what the creator wore in the video, if mentioned",
    "notes": "any other relevant info",
    "platformMetrics": [
      {{
        "platform": "tiktok/youtube/instagram/shorts/facebook",
        "views": number or null,
        "likes": number or null,
        "comments": number or null,
        "shares": number or null,
        "saves": number or null,
        "watchTimeSeconds": number or null,
        "followersGained": number or null,
        "posted": true/false if the note says whether it went up on this platform, else null,
        "postedAt": "date it went up on this platform (YYYY-MM-DD) or null"
      }}
    ]
  }},
  "confidence": {{
    "hook": 0.0-1.0,
    "caption": 0.0-1.0,
    "hashtags": 0.0-1.0,
    "format": 0.0-1.0,
    "platformMetrics": 0.0-1.0
  }}
}}

Return valid JSON only."""

STRICT_JSON_RETRY = """

IMPORTANT: Your previous answer could not be parsed.
Respond with ONE valid JSON object matching the format above and NOTHING else:
no markdown fences, no comments, no text before or after the object."""


def _format_video_context(known_videos: list) -> str:
    if not known_videos:
        return "No videos yet"
    lines = []
    for i, v in enumerate(known_videos):
        published = v.published_at.date().isoformat() if v.published_at else "unknown"
        lines.append(f'{i + 1}. "{v.title}" (ID: {v.id}, published: {published})')
    return "\n".join(lines)


def format_log_entry_prompt(
    text: str,
    known_videos: list,
    history: list[str] | None = None,
) -> tuple[str, str]:
    """
    Format the log entry extraction prompt.

    Args:
        text: Raw note or voice transcript
        known_videos: Abbreviated videos (id, title, published_at)
        history: Recent raw notes from the same user, oldest first

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    history_block = ""
    if history:
        recent = "\n".join(f"- {h[:300]}" for h in history)
        history_block = f"\nRecent notes from this user (for context only):\n{recent}\n"

    user = LOG_ENTRY_USER_TEMPLATE.format(
        video_context=_format_video_context(known_videos),
        history_block=history_block,
        text=text[:8000],
    )
    return LOG_ENTRY_SYSTEM, user


# =============================================================================
# COLUMN MAPPING PROMPT
# Spreadsheet headers + sample rows -> canonical field names
# =============================================================================

IMPORT_FIELDS = {
    "title": "video title/name",
    "youtubeVideoId": "YouTube video id",
    "platform": "social media platform (youtube, tiktok, instagram, etc)",
    "hook": "the hook/opening line",
    "description": "video description",
    "caption": "post caption",
    "hashtags": "hashtags",
    "topic": "topic/theme",
    "format": "video format",
    "wearingOutfit": "outfit worn in the video",
    "posted": "whether the video is posted on the row's platform (yes/no)",
    "platformPostedAt": "date the video went up on the row's platform",
    "views": "view count",
    "likes": "like count",
    "comments": "comment count",
    "shares": "share count",
    "saves": "save count",
    "watchTimeSeconds": "average watch time in seconds",
    "followersGained": "followers gained",
    "duration": "video length (seconds, MM:SS or HH:MM:SS)",
    "postedAt": "post date",
}

COLUMN_MAPPING_SYSTEM = """You map spreadsheet columns with video/content performance data to a fixed set of field names.
Output MUST be one JSON object. No markdown, no explanation.
Only include mappings you are confident about. Leave unsure columns out."""

COLUMN_MAPPING_USER_TEMPLATE = """Columns in the spreadsheet: {columns_json}

Sample rows:
{samples_json}

Create a mapping from the spreadsheet columns to these standard fields:
{fields_block}

Return a JSON object mapping spreadsheet column names to standard field names. Example:
{{
  "Video Title": "title",
  "Platform": "platform",
  "Views": "views",
  "Post Date": "postedAt"
}}

Return valid JSON only."""


def format_column_mapping_prompt(columns: list[str], sample_rows: list[dict]) -> tuple[str, str]:
    fields_block = "\n".join(f"- {name}: {desc}" for name, desc in IMPORT_FIELDS.items())
    user = COLUMN_MAPPING_USER_TEMPLATE.format(
        columns_json=json.dumps(columns, ensure_ascii=False),
        samples_json=json.dumps(sample_rows, ensure_ascii=False, indent=2, default=str),
        fields_block=fields_block,
    )
    return COLUMN_MAPPING_SYSTEM, user
