"""Error taxonomy shared by the feed, the services and the handlers.

Validation errors are raised before any network call. Write failures are
raised after the local optimistic change has been rolled back.
"""


class FringeError(Exception):
    """Base class; the message is safe to show to the user."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


# ─── transport / store ─────────────────────────────────
class BackendError(FringeError):
    default_message = "The server could not complete the request"


class StoreError(BackendError):
    default_message = "Database request failed"


class StorageError(BackendError):
    default_message = "Storage request failed"


# ─── auth / session ────────────────────────────────────
class AuthError(FringeError):
    default_message = "Authentication failed"


class SessionUnresolved(FringeError):
    default_message = "Session is not resolved yet"


class ProfileRequired(FringeError):
    default_message = "Please complete your profile before posting"


# ─── feed ──────────────────────────────────────────────
class FeedLoadFailed(FringeError):
    default_message = "Failed to load posts"


class MutationFailed(FringeError):
    default_message = "Failed to save changes"


class LimitExceeded(FringeError):
    default_message = "Too many images"


class ImageTooLarge(FringeError):
    default_message = "Please select images under 5MB"


class EmptyPost(FringeError):
    default_message = "Write something or add a photo"


class EmptyComment(FringeError):
    default_message = "Comment is empty"


class UploadFailed(FringeError):
    default_message = "Failed to upload image"


class SubmitInProgress(FringeError):
    default_message = "Your post is still being published"


# ─── videos / bookings ─────────────────────────────────
class VideoTooLarge(FringeError):
    default_message = "Please select a video smaller than 100MB"


class VideoTooLong(FringeError):
    default_message = "Please select a video shorter than 60 seconds"


class BookingError(FringeError):
    default_message = "Failed to book lesson"
