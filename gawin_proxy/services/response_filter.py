import re
import logging

logger = logging.getLogger("Gawin.Pipeline.ResponseFilter")

THINKING_BLOCKS = [
    re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<thinking>.*?</thinking>", re.IGNORECASE | re.DOTALL),
    re.compile(r"\[thinking\].*?\[/thinking\]", re.IGNORECASE | re.DOTALL),
]
# reasoning models sometimes stream an opening tag that is never closed
DANGLING_THINK = re.compile(r"^\s*<think>.*", re.IGNORECASE | re.DOTALL)
EXCESS_NEWLINES = re.compile(r"\n{3,}")


def filter_response(content: str) -> str:
    """Strip model reasoning blocks; keeps the original if nothing would remain."""
    if not content:
        return content
    filtered = content
    for pattern in THINKING_BLOCKS:
        filtered = pattern.sub("", filtered)
    if "</think>" not in filtered.lower():
        filtered = DANGLING_THINK.sub("", filtered)
    filtered = EXCESS_NEWLINES.sub("\n\n", filtered).strip()
    if not filtered:
        logger.debug("Response filter would empty the content; keeping the original.")
        return content
    return filtered
