"""
Crumb Sessions - Cookie-carried session state.

Session data lives entirely in the client's cookie:
- Payload is base64(JSON), or a Fernet token when encrypted
- Cookies are signed with a rotatable key ring
- Sessions load lazily and are only written when they changed
- Several named sessions can share one request

Philosophy:
- No server-side store
- Change detection by re-encoding, not dirty flags
- A bad cookie never breaks a request; a bad assignment always does
"""

from .core import (
    Session,
    SessionContext,
)

from .codec import (
    encode,
    decode,
    SessionCodec,
    JSONCodec,
    EncryptedCodec,
    create_codec,
)

from .policy import (
    DEFAULT_COOKIE_NAME,
    SessionConfig,
    SessionOptions,
    normalize_configs,
)

from .slot import (
    SessionSlot,
    SlotState,
)

from .faults import (
    SessionFault,
    ConfigurationError,
    DecodeError,
    InvalidAssignmentError,
    PersistError,
    SessionNotConfiguredError,
)

__all__ = [
    # Core types
    "Session",
    "SessionContext",
    # Codec
    "encode",
    "decode",
    "SessionCodec",
    "JSONCodec",
    "EncryptedCodec",
    "create_codec",
    # Configuration
    "DEFAULT_COOKIE_NAME",
    "SessionConfig",
    "SessionOptions",
    "normalize_configs",
    # Accessor
    "SessionSlot",
    "SlotState",
    # Faults
    "SessionFault",
    "ConfigurationError",
    "DecodeError",
    "InvalidAssignmentError",
    "PersistError",
    "SessionNotConfiguredError",
]
