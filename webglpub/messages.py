"""User-facing text, looked up by key.

Keys missing from the table come back unchanged so an untranslated message
is still recognisable in the UI and the log.
"""

from typing import Dict

MESSAGES: Dict[str, str] = {
    "ERROR_BUILD_ABSENT": "This build is corrupted or missing, please delete it and choose another one to publish",
    "ERROR_MAX_SIZE": "The build is too large. The maximum size of a published build is {0}.",
    "ERROR_ZIP_FAILED": "Could not package the build: {0}",
    "ERROR_NO_JOB_KEY": "The server accepted the upload but returned no processing job.",
    "ERROR_STALLED": "Publishing stopped without a result.",
}


def tr(key: str, *args: object) -> str:
    text = MESSAGES.get(key, key)
    return text.format(*args) if args else text
