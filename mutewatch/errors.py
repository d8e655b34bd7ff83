"""
Error kinds for mutewatch
"""


class MuteWatchError(Exception):
    """Base class for all mutewatch errors"""


class ShutdownRequested(MuteWatchError):
    """Raised when a termination signal arrives before the listener loop runs"""

    def __str__(self):
        return "Shutting down"


class ServerConnectionError(MuteWatchError):
    """Sound server connection could not be established or was lost"""


class ConnectionFailed(ServerConnectionError):
    def __str__(self):
        return "Context failed"


class ConnectionTerminated(ServerConnectionError):
    def __str__(self):
        return "Context terminated"


class FetchError(MuteWatchError):
    """An introspection request to the sound server failed"""


class ListFailed(FetchError):
    def __str__(self):
        return "Error receiving sources from the sound server"


class DescribeFailed(FetchError):
    def __init__(self, index: int):
        super().__init__(index)
        self.index = index

    def __str__(self):
        return f"Error receiving source {self.index} from the sound server"


class ServerInfoFailed(FetchError):
    def __str__(self):
        return "Error receiving server info from the sound server"
