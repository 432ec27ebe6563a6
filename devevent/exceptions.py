"""Error types raised by the DevEvent service."""


class DevEventError(Exception):
    """Base class for DevEvent errors."""

    title = "Internal server error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(DevEventError):
    """Raised when required configuration is missing or invalid."""

    title = "Configuration error"


class NormalizationError(DevEventError):
    """Raised when a human-entered field cannot be normalized."""

    title = "Validation error"

    def __init__(self, message: str, value: str):
        self.value = value
        super().__init__(message)


class InvalidDateError(NormalizationError):
    """Raised when a date string cannot be parsed."""

    title = "Invalid date"


class InvalidTimeError(NormalizationError):
    """Raised when a time string has no usable hour/minute pair."""

    title = "Invalid time"


class EventValidationError(DevEventError):
    """Raised when a record breaks a persistence-level rule."""

    title = "Validation error"


class DuplicateSlugError(DevEventError):
    """Raised when another event already uses the derived slug."""

    title = "Duplicate event"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"An event with slug '{slug}' already exists")


class EventNotFoundError(DevEventError):
    """Raised when a referenced event does not exist."""

    title = "Event not found"


class DatabaseConnectionError(DevEventError, ConnectionError):
    """Raised when establishing the database connection fails or times out."""

    title = "Database connection failed"


class ImageUploadError(DevEventError):
    """Raised when the media host rejects or fails an upload."""

    title = "Image upload failed"


class BookingNotFoundError(DevEventError):
    """Raised when a stored booking has disappeared."""

    title = "Booking not found"
