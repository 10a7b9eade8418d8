from __future__ import annotations

from typing import Final

# Discord limits
MAX_EMBED_DESCRIPTION: Final[int] = 4096
MAX_EMBED_TITLE: Final[int] = 256
MAX_WEBHOOK_NAME: Final[int] = 80

# Scheduler events
ANON_NAMESPACE: Final[str] = "anon"
ANON_TIMEOUT_END: Final[str] = "ANON_TIMEOUT_END"

# Audit actions
ACTION_BLACKLIST: Final[str] = "BLACKLIST"
ACTION_TIMEOUT: Final[str] = "TIMEOUT"
ACTION_UNBLACKLIST: Final[str] = "UNBLACKLIST"
ACTION_RESET: Final[str] = "RESET"

# Used when ANON_SUPPRESSION_SALT is not set. Changing it orphans every stored suppression;
# the line breaks and indentation are part of the value.
DEFAULT_SUPPRESSION_SALT: Final[str] = (
    "71a6152717d16d421e862dd923c9ba8f1d306f6c3ddd8f368abd40cef1b3ab1456e4f2965a5f3e08cc2d0f1b32c\n"
    "        fcc3bff5667955f805feccada825e0c1352e071e3e63ce7e29c7b2e6b7e29c11fe5347ee7da69e0b7d38c57346c\n"
    "        c8e47263502cfe33a7a60bc01410fd66ff4cd86931cd69b2002662ffd0e53cfadf903147c2"
)

MAX_COLOR: Final[int] = 0xFFFFFF

COLORS = {
    "default": 0x5865F2,
    "success": 0x57F287,
    "warning": 0xF1C40F,
    "error": 0xED4245,
    "info": 0x3498DB,
}

ERROR_MESSAGES = {
    "missing_permissions": "You don't have permission to use this command.",
    "integration_failure": "Discord didn't accept that request. Please try again in a moment.",
    "unexpected": "Something went wrong. The incident has been logged.",
}
