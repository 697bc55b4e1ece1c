class ValidationError(Exception):
    """A request is missing a required field or carries a malformed one."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class UpstreamFailure(Exception):
    """The chat-completion API was unreachable or answered with something unusable."""

class InvalidTransition(Exception):
    """A session action was issued in a state that does not accept it."""
