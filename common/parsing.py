# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import json
import re


def object_to_url_safe(data: dict | str | list) -> str:
    """Convert the object to an url safe base64 encoded JSON string."""
    return base64.urlsafe_b64encode(json.dumps(data).encode()).decode()


def object_from_url_safe(data: str) -> dict | str | list:
    """Load an JSON object from an url safe base64 encoded string. Adds padding as needed."""
    return json.loads(base64.urlsafe_b64decode(add_padding(data)))


def object_to_base64(data: dict | str | list) -> str:
    """Convert the object to a standard base64 encoded JSON string, as expected in wallet deep links."""
    return base64.b64encode(json.dumps(data).encode()).decode()


def object_from_base64(data: str) -> dict | str | list:
    """Load an JSON object from a standard base64 encoded string. Adds padding as needed."""
    return json.loads(base64.b64decode(add_padding(data)))


def remove_padding(base64_encoded: str) -> str:
    """Remove padding form b64 encoded string"""
    return base64_encoded.rstrip('=')


def add_padding(base64_encoded: str) -> str:
    """Add padding (=) for b64 encoded string, so it can be decoded"""
    return f'{base64_encoded}==='


def interpret_as_bool(boolify: str) -> bool:
    """
    Converts an inpput to an boolean according to commonly used patterns.
    """
    if isinstance(boolify, bool):
        return boolify
    if isinstance(boolify, int):
        return boolify > 0
    elif isinstance(boolify, str):
        return re.match(r"^(y|yes|1|true)$", boolify, re.IGNORECASE | re.MULTILINE) is not None
    raise Exception(f"Can't boolify a {boolify}.")
