"""Custom exceptions for the face identity service."""
from typing import Optional


class FaceIdentityError(Exception):
    """Base exception for face identity operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face identity error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.details = details or {}


class InvalidImageError(FaceIdentityError):
    """Raised when the provided image is invalid or cannot be processed."""
    pass


class NoFaceDetectedError(FaceIdentityError):
    """Raised when no face is detected in the image."""
    pass


class MultipleFacesError(FaceIdentityError):
    """Raised when multiple faces are found in an image that expects only one face."""
    pass


class ExtractorUnavailableError(FaceIdentityError):
    """Raised when the descriptor extractor cannot be reached or fails internally."""
    pass


class ModelLoadError(ExtractorUnavailableError):
    """Raised when the face recognition model fails to load."""
    pass


class IdentityStoreError(FaceIdentityError):
    """Base exception for identity store operations."""
    pass


class StoreUnavailableError(IdentityStoreError):
    """Raised when the identity store cannot be reached."""
    pass


class IdentityConflictError(IdentityStoreError):
    """Raised when an insert or update collides with a uniqueness rule."""
    pass


class DuplicateContactError(IdentityConflictError):
    """Raised when inserting an identity whose contact is already taken."""
    pass


class DuplicateDisplayNameError(IdentityConflictError):
    """Raised when a registered identity's display name is already taken by another registered one."""
    pass


class CredentialIssuerError(FaceIdentityError):
    """Raised when a session credential cannot be minted."""
    pass


class ServiceNotInitializedError(FaceIdentityError):
    """Raised when a service is requested before the container is initialized."""
    pass
