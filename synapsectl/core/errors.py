"""Domain-specific errors for synapsectl."""


class SynapseError(Exception):
    """Base error for synapsectl."""


class SettingsLoadError(SynapseError):
    """Raised when the settings file cannot be read."""


class SettingsValidationError(SynapseError):
    """Raised when the settings file does not conform to schema or semantics."""


class CommandEncodingError(SynapseError):
    """Raised when a command carries a token the wire grammar cannot express."""


class UnsupportedShortcutError(SynapseError):
    """Raised when a shortcut has no key combination on this protocol version."""


class LinkError(SynapseError):
    """Base link error."""


class RadioOffError(LinkError):
    """Raised when a connection is attempted while the radio is disabled."""


class DiscoveryError(LinkError):
    """Raised when the accessory service or write channel never resolved."""


class LinkDroppedError(LinkError):
    """Raised when the link goes down while a session still needs it."""


class LinkTimeoutError(LinkError):
    """Raised when the link does not become ready in time."""
