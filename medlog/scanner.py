"""
Medication label scanner.

Sends a photo of a medication label to the Gemini API and returns its best
guess at the add-medication form fields. The result only prefills the form;
the usual validation and defaults still run when the user saves.
"""
import base64
import io
import json
import logging
import os
from typing import Optional

import requests
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from .schemas import LabelScan

logger = logging.getLogger(__name__)

API_KEY = os.getenv("GEMINI_API_KEY", "")
MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
API_URL = f"https://generativelanguage.googleapis.com/v1beta/models/{MODEL}:generateContent"
TIMEOUT = 30

PROMPT = (
    "Analyze this medication label. Extract the name, dosage value (number only), "
    "dosage unit (mg, ml, mcg, g, drops), category, medication form (Tablet, Capsule, "
    "Liquid, Syringe, Softgel), and recommended frequency. If it is a liquid or syringe, "
    "prefer 'ml' as the unit. Return as JSON."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "dosageValue": {"type": "STRING"},
        "dosageUnit": {"type": "STRING"},
        "form": {"type": "STRING"},
        "category": {"type": "STRING"},
        "frequency": {"type": "INTEGER"},
    },
}


class ScanError(Exception):
    """The label could not be read. Manual entry is still possible."""


def sniff_mime_type(image_bytes: bytes) -> str:
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            fmt = image.format
            image.verify()
    except (UnidentifiedImageError, OSError) as e:
        raise ScanError("The uploaded file is not a readable image.") from e
    mime = Image.MIME.get(fmt or "")
    if not mime:
        raise ScanError(f"Unsupported image format: {fmt}")
    return mime


def scan_label(image_bytes: bytes, mime_type: Optional[str] = None, api_key: Optional[str] = None) -> LabelScan:
    """
    Reads a medication label image.

    Args:
        image_bytes (bytes): The raw image file contents.
        mime_type (str): Declared content type; sniffed with Pillow when absent or generic.
        api_key (str): Overrides ``GEMINI_API_KEY``.

    Returns:
        LabelScan: Whatever fields the model could read. Any of them may be None.

    Raises:
        ScanError: On a missing key, unreadable image, failed request or unusable reply.
    """
    key = api_key or API_KEY
    if not key:
        raise ScanError("Label scanning is not configured (GEMINI_API_KEY is unset).")
    if not image_bytes:
        raise ScanError("No image was provided.")
    if not mime_type or not mime_type.startswith("image/"):
        mime_type = sniff_mime_type(image_bytes)

    payload = {
        "contents": [{
            "parts": [
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image_bytes).decode("ascii")}},
                {"text": PROMPT},
            ]
        }],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }

    try:
        response = requests.post(API_URL, params={"key": key}, json=payload, timeout=TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.warning("Label scan request failed: %s", e)
        raise ScanError("The label scanning service could not be reached.") from e

    try:
        raw = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        result = LabelScan.model_validate(json.loads(raw or "{}"))
    except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
        logger.warning("Unusable label scan response: %s", e)
        raise ScanError("The label could not be read. Please enter the details manually.") from e

    logger.info("Label scanned: %s", result.name)
    return result
