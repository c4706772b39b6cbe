"""
Utility helper functions.
"""
import json
from typing import Any, Dict


def format_sse(event: Dict[str, Any]) -> str:
    """
    Serialize one event as a Server-Sent Events frame.

    Args:
        event: JSON-serializable dict carrying a "type" key

    Example:
        >>> format_sse({"type": "token", "text": "Hi"})
        'data: {"type": "token", "text": "Hi"}\\n\\n'
    """
    return f"data: {json.dumps(event)}\n\n"
