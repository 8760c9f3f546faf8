"""
Error kinds raised by the recorder components
"""


class StatifyError(Exception):
    """Base class for recorder errors"""


class AuthError(StatifyError):
    """Authorization, code exchange or refresh call rejected or malformed"""


class TransportError(StatifyError):
    """Network failure or timeout talking to the remote API"""


class StorageError(StatifyError):
    """Local persistence failed during schema bootstrap or append"""


class ClassificationAmbiguity(StatifyError):
    """Remote playback payload has a shape the classifier does not recognise"""
