class ValidationError(Exception):
    """A draft or upload was rejected before any store call was made."""


class StoreError(Exception):
    """The record store failed; the message is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EditorStateError(Exception):
    """A command was issued in a state that does not accept it."""


class AnimaNotFound(StoreError):
    """An update or delete targeted an id the store does not hold."""
