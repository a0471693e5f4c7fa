# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Wrapper for httpx functions to add additional context"""

import httpx


def request(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    """Wrapper for `httpx.Client.request`, on error adds additional information to the exception.
    By default httpx transport errors only provide e.g. '[Errno -2] Name or service not known'
    Raises httpx.HTTPStatusError for non 2xx responses.
    """
    try:
        response = client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        e.add_note(f"Failed to {method} {url=} on {client.base_url}")
        raise
    response.raise_for_status()
    return response
