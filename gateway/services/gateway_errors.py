"""
CSOB Gateway Client -- Error taxonomy

Every failure the signing/verification pipeline can raise. None of these are
retried inside the client; they propagate to the immediate caller.
"""


class GatewayClientError(Exception):
  """Base for all errors raised by the gateway client."""


class KeyMaterialError(GatewayClientError):
  """Key material is missing, unreadable, or cannot be parsed/decrypted."""


class SigningError(GatewayClientError):
  """The signing primitive itself failed (not a key problem)."""


class VerificationError(GatewayClientError):
  """The verification engine faulted. Distinct from "signature did not match"."""


class SignatureError(GatewayClientError):
  """A response signature was checked and did not match its base string."""

  def __init__(self, message, signature_base=None, response=None):
    super().__init__(message)
    self.signature_base = signature_base
    self.response = response


class TransportError(GatewayClientError):
  """
  The gateway answered with a non-200 HTTP status, or the request could not
  be sent at all (status_code is None then).
  """

  def __init__(self, message, status_code=None, result_code=None, result_message=None, body=None):
    super().__init__(message)
    self.status_code = status_code
    self.result_code = result_code
    self.result_message = result_message
    self.body = body


class MalformedResponseError(GatewayClientError):
  """Response body is not valid JSON."""

  def __init__(self, message, body=None):
    super().__init__(message)
    self.body = body


class ProtocolError(GatewayClientError):
  """Valid JSON, but a mandatory envelope field (resultCode, signature) is missing."""


class GatewayError(GatewayClientError):
  """
  A verified response reporting a non-zero business result code.

  Callers branch on known codes, e.g. 150 (operation invalid for the current
  payment state) or 800 (customer not found).
  """

  def __init__(self, result_code, result_message=None, response=None):
    super().__init__(
      f"Gateway returned an error: resultCode \"{result_code}\", resultMessage: {result_message}"
    )
    self.result_code = result_code
    self.result_message = result_message
    self.response = response

  def has_result_code(self, *codes):
    """True if this error carries any of the given codes (compared as strings)."""
    return str(self.result_code) in {str(code) for code in codes}
