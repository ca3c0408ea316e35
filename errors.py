"""Shared error codes, user-facing messages and the exception taxonomy."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
ALREADY_RECORDING = "ALREADY_RECORDING"
NOT_RECORDING = "NOT_RECORDING"
SESSION_BUSY = "SESSION_BUSY"
EMPTY_TRANSCRIPTION = "EMPTY_TRANSCRIPTION"
PROVIDER_ERROR = "PROVIDER_ERROR"
TIMEOUT = "TIMEOUT"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required in system settings.",
    DEVICE_UNAVAILABLE: "No usable microphone was found.",
    ALREADY_RECORDING: "A recording is already in progress.",
    NOT_RECORDING: "Not recording.",
    SESSION_BUSY: "Please wait for the current reply to finish.",
    EMPTY_TRANSCRIPTION: "No speech was recognised, please try again.",
    PROVIDER_ERROR: "The speech service returned an error.",
    TIMEOUT: "The speech service did not answer in time.",
    UNKNOWN_ERROR: "Something went wrong, please retry.",
}


class VoiceChatError(Exception):
    """Base class carrying one of the error codes above."""

    code = UNKNOWN_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])
        self.message = message

    @property
    def display_message(self) -> str:
        return self.message or ERROR_MESSAGES[self.code]


class PermissionDeniedError(VoiceChatError):
    code = PERMISSION_DENIED


class DeviceUnavailableError(VoiceChatError):
    code = DEVICE_UNAVAILABLE


class AlreadyRecordingError(VoiceChatError):
    code = ALREADY_RECORDING


class NotRecordingError(VoiceChatError):
    code = NOT_RECORDING


class SessionBusyError(VoiceChatError):
    code = SESSION_BUSY


class EmptyTranscriptionError(VoiceChatError):
    code = EMPTY_TRANSCRIPTION


class RequestTimeoutError(VoiceChatError):
    code = TIMEOUT


class UnknownError(VoiceChatError):
    code = UNKNOWN_ERROR


class ProviderError(VoiceChatError):
    """Non-2xx answer from the speech service."""

    code = PROVIDER_ERROR

    def __init__(self, status: int, detail: str = "", message: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail

    @property
    def display_message(self) -> str:
        if self.detail:
            return self.detail
        if self.message:
            return self.message
        return f"{ERROR_MESSAGES[self.code]} (HTTP {self.status})"

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.display_message}"


# Session/device errors go back to the gesture that caused them; everything
# else ends up as an ERROR entry in the transcript.
SESSION_ERRORS = (
    PermissionDeniedError,
    DeviceUnavailableError,
    AlreadyRecordingError,
    NotRecordingError,
    SessionBusyError,
)
