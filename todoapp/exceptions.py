"""Exception hierarchy for the todo app."""


class TodoAppError(Exception):
    """Base exception for all todo app errors."""


class AuthError(TodoAppError):
    """Raised when an authentication ceremony cannot complete."""


class ChallengeNotFoundError(AuthError):
    """Raised when no outstanding challenge exists for a ceremony."""


class VerificationError(AuthError):
    """Raised when an attestation or assertion fails verification."""


class InvalidCredentialsError(AuthError):
    """Raised when a username/password pair does not match."""


class NotFoundError(TodoAppError):
    """Raised when a requested record does not exist for the caller."""


class UserNotFoundError(NotFoundError):
    """Raised when a username has no user record."""


class CredentialNotFoundError(NotFoundError):
    """Raised when a user has no usable authenticator."""


class TodoNotFoundError(NotFoundError):
    """Raised when a todo does not exist for the caller."""


class TemplateNotFoundError(NotFoundError):
    """Raised when a template does not exist for the caller."""


class ConflictError(TodoAppError):
    """Raised when a uniqueness constraint would be violated."""


class UserExistsError(ConflictError):
    """Raised when a username is already taken."""


class TagExistsError(ConflictError):
    """Raised when a tag name is already used by the same user."""


class CredentialExistsError(ConflictError):
    """Raised when a credential ID is already registered to an authenticator."""


class ImportFormatError(TodoAppError):
    """Raised when an import payload is not a usable backup."""
