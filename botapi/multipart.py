"""multipart/form-data encoding for file uploads.

The boundary is chosen per request so that it never occurs inside any of
the values being sent, then every parameter becomes one part of the body
in key order.
"""

from __future__ import annotations

import secrets

from botapi.params import HttpParameter, ParameterList

# Characters allowed in an unquoted MIME boundary (RFC 2046 bcharsnospace
# minus the ones that would need quoting in the Content-Type header).
_BOUNDARY_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'()+_-."
_BOUNDARY_START = 16
_BOUNDARY_CHUNK = 4


def _random_string(length: int) -> str:
    return "".join(secrets.choice(_BOUNDARY_ALPHABET) for _ in range(length))


def _collides(boundary: str, params: ParameterList) -> bool:
    token = boundary.encode("ascii")
    return any(token in param.value for param in params.values())


def choose_boundary(params: ParameterList) -> str:
    """Return a boundary that occurs in none of the values of *params*.

    Starts from a random token and keeps appending random chunks until no
    parameter value contains it.
    """
    boundary = _random_string(_BOUNDARY_START)
    while _collides(boundary, params):
        boundary += _random_string(_BOUNDARY_CHUNK)
    return boundary


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


def _part_header(name: str, param: HttpParameter) -> bytes:
    disposition = f'Content-Disposition: form-data; name="{_quote(name)}"'
    if param.is_file:
        disposition += f'; filename="{_quote(param.filename)}"'
    lines = [disposition]
    if param.is_file:
        lines.append(f"Content-Type: {param.mime_type}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def encode_multipart(params: ParameterList, boundary: str) -> bytes:
    """Build the multipart body for *params* delimited by *boundary*.

    The body always ends with the closing ``--<boundary>--`` marker, even
    when *params* is empty.
    """
    delimiter = f"--{boundary}\r\n".encode("ascii")
    body = bytearray()
    for name, param in params.items():
        body += delimiter
        body += _part_header(name, param)
        body += param.value
        body += b"\r\n"
    body += f"--{boundary}--".encode("ascii")
    return bytes(body)
