class CheckError(RuntimeError):
    """Any failure that keeps a check from producing a threshold verdict."""


class UsageError(CheckError):
    pass


class AgentTimeout(CheckError):
    pass


class TransportError(CheckError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(TransportError):
    pass


class InterfaceNotFound(CheckError):
    pass


class PeerNotFound(CheckError):
    pass


class InvalidPeerAddress(CheckError):
    pass


class PeerKeyCollision(CheckError):
    pass
