"""Message builders for the three extraction tasks."""

from src.github.parsing import Comment

TIMELINE_MAX_TOKENS = 100
ETA_MAX_TOKENS = 200
ANALYSIS_MAX_TOKENS = 500

Messages = list[dict[str, str]]


def timeline_messages(title: str, body: str) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You extract customer availability timelines from product roadmap issues. "
                "Be precise and concise."
            ),
        },
        {
            "role": "user",
            "content": (
                "Find when this feature becomes available to customers.\n"
                "Look for specific dates (March 2025, Q2 2025), relative timeframes "
                "(next quarter), and release stages with timing (preview in Q1, GA in summer).\n"
                "Prefer the final availability date when several are given.\n"
                "Reply with the timeline only, at most 50 characters, or None when absent.\n\n"
                f"Issue title: {title}\n\n"
                f"Issue body:\n{body}\n\n"
                "Timeline:"
            ),
        },
    ]


def render_comments(comments: list[Comment]) -> str:
    """Render comments newest-first as numbered prompt blocks."""
    blocks = []
    for index, comment in enumerate(comments, start=1):
        author = comment.author.display_name if comment.author else "unknown"
        blocks.append(f"Comment {index} by {author} ({comment.created_at}):\n{comment.body}")
    return "\n\n---\n\n".join(blocks)


def eta_messages(title: str, comments: list[Comment]) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You extract delivery estimates from maintainer discussions. "
                "Always respond with valid JSON only."
            ),
        },
        {
            "role": "user",
            "content": (
                "Find the most recent estimated delivery date given by the maintainers below.\n"
                "Prefer newer comments over older ones, and the most specific date within a comment.\n"
                'Respond with ONLY a JSON object: {"date": "<date or None>", '
                '"text": "<exact sentence containing the date or None>"}\n\n'
                f"Issue title: {title}\n\n"
                f"Maintainer comments (newest first):\n{render_comments(comments)}\n\n"
                "JSON:"
            ),
        },
    ]


def analysis_messages(title: str, body: str, comments: list[Comment]) -> Messages:
    discussion = render_comments(comments) if comments else "(no maintainer comments)"
    return [
        {
            "role": "system",
            "content": (
                "You triage open GitHub issues for a maintainer team. "
                "Always respond with valid JSON only."
            ),
        },
        {
            "role": "user",
            "content": (
                "Summarize the current state of this issue for the maintainers.\n"
                "Respond with ONLY a JSON object of the form:\n"
                '{"currentStatus": "<one or two sentences>", "nextSteps": "<one or two sentences>", '
                '"analysis": {"isKnownIssue": <bool>, "isExpectedBehaviour": <bool>, "shouldClose": <bool>}}\n\n'
                f"Issue title: {title}\n\n"
                f"Issue body:\n{body or '(empty)'}\n\n"
                f"Maintainer comments (newest first):\n{discussion}\n\n"
                "JSON:"
            ),
        },
    ]
