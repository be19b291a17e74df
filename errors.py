"""
Error taxonomy for the chat backend.

Every failure a core operation can report is a ChatError subclass carrying
the HTTP status the API layer answers with.
"""
from typing import List, Optional


class ChatError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(ChatError):
    """Malformed or missing required field"""
    status_code = 422


class Conflict(ChatError):
    """Participant name already active"""
    status_code = 409


class NotFound(ChatError):
    """Unknown participant or message id"""
    status_code = 404


class Unauthorized(ChatError):
    """Actor is not the owner of the message"""
    status_code = 401


class StoreUnavailable(ChatError):
    """Underlying database failure, transient"""
    status_code = 500
