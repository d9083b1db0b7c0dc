"""
Input sanitization helpers used by the request schemas.
"""

import re
from typing import Optional


_SCRIPT_TAG = re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL)
_EVENT_HANDLER = re.compile(r'on\w+\s*=', re.IGNORECASE)
_JS_URL = re.compile(r'javascript\s*:', re.IGNORECASE)


def strip_dangerous_tags(content: Optional[str]) -> Optional[str]:
    """
    Remove script tags, inline event handlers and javascript: URLs.

    Plain text passes through untouched.
    """
    if content is None or not isinstance(content, str):
        return content

    content = _SCRIPT_TAG.sub('', content)
    content = _EVENT_HANDLER.sub('', content)
    content = _JS_URL.sub('', content)
    return content
