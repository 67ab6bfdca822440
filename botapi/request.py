"""Request Builder: endpoint + parameters + transfer mode to an HTTP request.

Requests are prepared with :mod:`requests` but not sent; sending is the
dispatcher's job.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlencode

import requests

from botapi.exceptions import BuildError
from botapi.multipart import choose_boundary, encode_multipart
from botapi.params import Method, ParameterList

API_HOST = "api.telegram.org"

logger = logging.getLogger(__name__)


def encode_parameters(params: ParameterList) -> str:
    """Percent-encode *params* as ``key=value`` pairs joined by ``&``."""
    return urlencode([(name, param.value) for name, param in params.items()], quote_via=quote)


class RequestBuilder:
    """Builds :class:`requests.PreparedRequest` objects for one bot token."""

    def __init__(self, token: str, host: str = API_HOST, scheme: str = "https") -> None:
        self._token = token
        self._host = host
        self._scheme = scheme

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def build_url(self, endpoint: str) -> str:
        """Return ``<scheme>://<host>/bot<token><endpoint>``."""
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{self._scheme}://{self._host}/bot{self._token}{endpoint}"

    def build(self, endpoint: str, params: ParameterList, method: Method) -> requests.PreparedRequest:
        """Prepare the HTTP request for *endpoint*.

        Raises:
            BuildError: If *endpoint* is empty or no bot token is configured.
        """
        if not endpoint:
            raise BuildError("Cannot build a request without an endpoint")
        if not self._token:
            raise BuildError("Cannot build a request without a bot token")

        url = self.build_url(endpoint)

        if method is Method.GET:
            query = encode_parameters(params)
            request = requests.Request("GET", f"{url}?{query}" if query else url)
        elif method is Method.POST:
            request = requests.Request(
                "POST",
                url,
                data=encode_parameters(params),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        elif method is Method.UPLOAD:
            boundary = choose_boundary(params)
            body = encode_multipart(params, boundary)
            request = requests.Request(
                "POST",
                url,
                data=body,
                headers={
                    "Content-Type": f"multipart/form-data; boundary={boundary}",
                    "Content-Length": str(len(body)),
                },
            )
        else:
            raise BuildError(f"Unsupported transfer method: {method!r}")

        prepared = request.prepare()
        logger.debug("Request built", extra={"api_endpoint": endpoint, "http_method": method.name, "parameters": list(params)})
        return prepared
