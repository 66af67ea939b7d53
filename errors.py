"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
NO_AUDIO_CAPTURED = "NO_AUDIO_CAPTURED"
PLAYBACK_ERROR = "PLAYBACK_ERROR"
UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
CAPTURE_BUSY = "CAPTURE_BUSY"
EMPTY_TITLE = "EMPTY_TITLE"
INVALID_AUDIO = "INVALID_AUDIO"

DEFAULT_LANGUAGE = "fr"

ERROR_MESSAGES = {
    "en": {
        PERMISSION_DENIED: "Microphone access was denied.",
        DEVICE_UNAVAILABLE: "No microphone is available.",
        NO_AUDIO_CAPTURED: "No audio was captured.",
        PLAYBACK_ERROR: "The audio could not be played.",
        UPSTREAM_FAILURE: "The server request failed.",
        CAPTURE_BUSY: "A recording is already in progress.",
        EMPTY_TITLE: "The title cannot be empty.",
        INVALID_AUDIO: "Please select a valid audio file.",
    },
    "fr": {
        PERMISSION_DENIED: "L'accès au microphone a été refusé.",
        DEVICE_UNAVAILABLE: "Aucun microphone disponible.",
        NO_AUDIO_CAPTURED: "Aucun son n'a été enregistré.",
        PLAYBACK_ERROR: "Impossible de lire l'audio.",
        UPSTREAM_FAILURE: "La requête au serveur a échoué.",
        CAPTURE_BUSY: "Un enregistrement est déjà en cours.",
        EMPTY_TITLE: "Le titre ne peut pas être vide.",
        INVALID_AUDIO: "Veuillez sélectionner un fichier audio valide.",
    },
}

RECORDING_SAVED = "RECORDING_SAVED"
RECORDING_RENAMED = "RECORDING_RENAMED"
RECORDING_DELETED = "RECORDING_DELETED"
BEAT_ADDED = "BEAT_ADDED"
BEAT_DELETED = "BEAT_DELETED"
BEAT_ATTACHED = "BEAT_ATTACHED"
BEAT_DETACHED = "BEAT_DETACHED"

NOTICE_MESSAGES = {
    "en": {
        RECORDING_SAVED: "Recording added.",
        RECORDING_RENAMED: "Recording renamed.",
        RECORDING_DELETED: "Recording deleted.",
        BEAT_ADDED: "Beat added.",
        BEAT_DELETED: "Beat deleted.",
        BEAT_ATTACHED: "Beat attached to the note.",
        BEAT_DETACHED: "Beat removed from the note.",
    },
    "fr": {
        RECORDING_SAVED: "Enregistrement ajouté avec succès",
        RECORDING_RENAMED: "Enregistrement renommé",
        RECORDING_DELETED: "Enregistrement supprimé",
        BEAT_ADDED: "Beat ajouté avec succès",
        BEAT_DELETED: "Beat supprimé",
        BEAT_ATTACHED: "Beat associé à la note",
        BEAT_DETACHED: "Beat retiré de la note",
    },
}


def message_for(code: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Return the localized text for an error or notice code.

    Unknown languages fall back to English, unknown codes to the code itself.
    """
    for catalog in (ERROR_MESSAGES, NOTICE_MESSAGES):
        messages = catalog.get(language) or catalog["en"]
        if code in messages:
            return messages[code]
    return code


class BeatpadError(Exception):
    """Base exception carrying one of the error codes above."""

    code = UPSTREAM_FAILURE

    def __init__(self, detail: str = "", code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.detail = detail or self.code
        super().__init__(self.detail)


class PermissionDeniedError(BeatpadError):
    code = PERMISSION_DENIED


class DeviceUnavailableError(BeatpadError):
    code = DEVICE_UNAVAILABLE


class PlaybackDeviceError(BeatpadError):
    code = PLAYBACK_ERROR


class UpstreamFailureError(BeatpadError):
    """Storage or record-store failure, message passed through unchanged."""

    code = UPSTREAM_FAILURE


class OwnershipRevokedError(BeatpadError):
    """Raised when a revoked playback token is used."""

    code = PLAYBACK_ERROR
