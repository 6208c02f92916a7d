"""Exception types raised by the relay, the client pipelines and the services."""


class OmniBotError(Exception):
    """Base class for all application errors."""


class UpstreamError(OmniBotError):
    """The upstream voice service could not be reached or failed mid-stream."""


class MessageError(OmniBotError, ValueError):
    """A duplex channel message could not be decoded or validated."""


class CallSetupError(OmniBotError):
    """A call could not be started (microphone denied, channel failed to open).

    The message is meant to be shown to the user as-is.
    """
