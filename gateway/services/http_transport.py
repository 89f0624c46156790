"""
CSOB Gateway Client -- HTTP Transport

Direct HTTP calls via httpx. Sends already signed envelopes and hands back
(status code, body text); it never interprets the body. Non-200 answers are
the response validator's business, only "could not talk to the gateway at
all" is reported here.
"""

import logging
import os
import ssl

import httpx

from services.gateway_errors import TransportError

logger = logging.getLogger("csob.transport")

REQUEST_HEADERS = {
  "Content-Type": "application/json",
  "Accept": "application/json;charset=UTF-8",
}


def build_tls_verification(tls_verify):
  """
  True  -> default system trust store
  False -> no verification
  path  -> CA bundle file, or directory of hashed CA certificates
  """
  if tls_verify is True or tls_verify is None:
    return True
  if tls_verify is False:
    return False

  ca_path = os.fspath(tls_verify)
  if os.path.isdir(ca_path):
    return ssl.create_default_context(capath=ca_path)
  return ssl.create_default_context(cafile=ca_path)


class HttpTransport:
  """Blocking transport; one short-lived httpx.Client per request."""

  def __init__(self, tls_verify=True, timeout_seconds=30.0, httpx_transport=None):
    self.tls_verify = tls_verify
    self.timeout_seconds = timeout_seconds
    # Injected httpx transport (httpx.MockTransport in tests)
    self.httpx_transport = httpx_transport

  def _client(self):
    client_options = {"timeout": self.timeout_seconds}
    if self.httpx_transport is not None:
      client_options["transport"] = self.httpx_transport
    else:
      client_options["verify"] = build_tls_verification(self.tls_verify)
    return httpx.Client(**client_options)

  def send(self, http_method, url, body=None):
    """
    Issue one request.

    Returns: (status_code, response_text)
    Raises: TransportError (status_code None) when no answer was received.
    """
    try:
      with self._client() as http_client:
        response = http_client.request(
          http_method,
          url,
          content=body.encode("utf-8") if body is not None else None,
          headers=REQUEST_HEADERS,
        )
    except httpx.HTTPError as http_error:
      logger.error("%s %s failed: %s", http_method, url, http_error)
      raise TransportError(f"Request to gateway failed: {http_error}") from http_error

    logger.debug("%s %s -> HTTP %s", http_method, url, response.status_code)
    return response.status_code, response.text
