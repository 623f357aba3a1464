"""
Utility modules package.
"""

from .images import decode_image
from .timing import format_uptime, retry_with_backoff

__all__ = [
    'decode_image',
    'format_uptime',
    'retry_with_backoff',
]
