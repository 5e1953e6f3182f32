"""
Input validation for user-supplied URLs and names
"""

import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)


class InputValidator:
    """Input validation helpers for bulk submissions and webhook targets"""

    URL_PATTERN = re.compile(
        r'^https?://'  # http:// or https://
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'  # domain...
        r'localhost|'  # localhost...
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # ...or ip
        r'(?::\d+)?'  # optional port
        r'(?:/?|[/?]\S+)$', re.IGNORECASE)

    # Niche, tone, template and platform identifiers
    NAME_PATTERN = re.compile(r'^[\w][\w \-&]{0,63}$', re.UNICODE)

    @classmethod
    def validate_url(cls, url: str) -> bool:
        if not url or len(url) > 2048:
            return False

        return bool(cls.URL_PATTERN.match(url))

    @classmethod
    def validate_name(cls, value: str) -> bool:
        return bool(value) and bool(cls.NAME_PATTERN.match(value))

    @classmethod
    def sanitize_string(cls, value: str, max_length: int = 1000) -> str:
        if not isinstance(value, str):
            value = str(value)

        # Remove null bytes and control characters
        value = ''.join(char for char in value if ord(char) >= 32 or char in '\n\r\t')

        return value[:max_length].strip()

    @classmethod
    def normalize_names(cls, values: Optional[List[str]]) -> List[str]:
        """Lower-case, trim and de-duplicate names, keeping first-seen order"""
        seen = []
        for value in values or []:
            name = cls.sanitize_string(value, max_length=64).lower()
            if name and name not in seen:
                seen.append(name)
        return seen
