"""
CSOB Gateway Client -- Response Validator

Nothing from a gateway response reaches the caller before its signature has
been checked. Order of checks:

  1. HTTP status must be 200                     -> TransportError
  2. body must be JSON                           -> MalformedResponseError
  3. body must be an object with "resultCode"    -> ProtocolError
  4. body must carry a non-empty "signature"     -> ProtocolError
  5. signature over the body minus "signature"   -> SignatureError (unless tolerant)
  6. resultCode must be "0"                      -> GatewayError
  7. nested extension objects, each with its own signature and strictness

The result code is looked at only after the signature, so a forged error code
is rejected as a bad signature rather than believed.
"""

import json
import logging

from services import crypto_service
from services.gateway_errors import (
  GatewayError,
  MalformedResponseError,
  ProtocolError,
  SignatureError,
  TransportError,
)
from services.log_sinks import NULL_SINK
from services.signature_base import create_signature_base, without_signature

logger = logging.getLogger("csob.response")

RESULT_CODE_OK = "0"


class VerifiedResponse(dict):
  """
  Parsed response data. `signature_verified` is False only when the caller
  asked to tolerate an invalid signature and the check actually failed.
  """

  signature_verified = True


def _try_parse_json(raw_body):
  try:
    return json.loads(raw_body)
  except (TypeError, ValueError):
    return None


def _check_http_status(raw_body, http_status):
  if http_status == 200:
    return

  result_code = None
  result_message = None
  error_data = _try_parse_json(raw_body)
  if isinstance(error_data, dict):
    result_code = error_data.get("resultCode")
    result_message = error_data.get("resultMessage")

  message = f"Gateway answered with HTTP status {http_status}"
  if result_code is not None:
    message += f" (resultCode {result_code}: {result_message})"
  raise TransportError(
    message,
    status_code=http_status,
    result_code=result_code,
    result_message=result_message,
    body=raw_body,
  )


def parse_response_body(raw_body):
  """JSON object with resultCode and signature, or the matching error."""
  try:
    response_data = json.loads(raw_body)
  except (TypeError, ValueError) as decode_error:
    raise MalformedResponseError(
      f"Gateway response is not valid JSON: {decode_error}", body=raw_body
    ) from decode_error

  if not isinstance(response_data, dict):
    raise ProtocolError("Gateway response is not a JSON object.")
  if "resultCode" not in response_data:
    raise ProtocolError("Gateway response is missing resultCode.")
  if not response_data.get("signature"):
    raise ProtocolError("Gateway response is not signed.")
  return response_data


def verify_response_signature(response_data, gateway_config, response_fields=None, trace_log=NULL_SINK):
  """Returns (verified, signature_base) for the top-level response object."""
  signature = response_data["signature"]
  signature_base = create_signature_base(without_signature(response_data), response_fields)
  trace_log.write(f"Verifying signature of response, base string is: {signature_base}")

  verified = crypto_service.verify_signature(
    signature_base,
    signature,
    gateway_config.bank_public_key.get_key(),
    gateway_config.response_hash_method,
  )
  return verified, signature_base


def check_result_code(response_data):
  result_code = response_data["resultCode"]
  if str(result_code) != RESULT_CODE_OK:
    raise GatewayError(result_code, response_data.get("resultMessage"), response=response_data)


def dispatch_extensions(response_data, gateway_config, extensions, trace_log=NULL_SINK):
  """
  Hand each returned extension object to the Extension with the same id and
  let it verify its own signature. A strict extension whose signature fails
  aborts the call; a lenient one only records the outcome.
  """
  extensions_by_id = {extension.extension_id: extension for extension in extensions}
  for extension_data in response_data.get("extensions") or []:
    if not isinstance(extension_data, dict):
      continue
    extension = extensions_by_id.get(extension_data.get("extension"))
    if extension is None:
      logger.debug("No handler for returned extension %r", extension_data.get("extension"))
      continue

    extension.set_response_data(extension_data)
    signature_correct = extension.verify(
      extension_data,
      gateway_config.bank_public_key.get_key(),
      extension.hash_method or gateway_config.response_hash_method,
      trace_log,
    )
    extension.signature_correct = signature_correct

    if not signature_correct:
      message = f"Signature of extension {extension.extension_id} is invalid."
      if extension.strict_signature_verification:
        raise SignatureError(message, response=extension_data)
      logger.warning(message)


def validate_response(
  raw_body,
  http_status,
  gateway_config,
  response_fields=None,
  extensions=(),
  tolerate_invalid_signature=False,
  trace_log=NULL_SINK,
):
  """
  Turn a raw gateway reply into verified response data.

  Args:
    raw_body: response body text.
    http_status: HTTP status code.
    gateway_config: GatewayConfig holding the bank public key and version.
    response_fields: ordered field spec of the response, or None for key order.
    extensions: Extension objects expected in the response.
    tolerate_invalid_signature: return data with signature_verified=False
      instead of raising SignatureError.
    trace_log: sink for base strings and the raw body.

  Returns: VerifiedResponse
  """
  trace_log.write(f"Received response with HTTP status {http_status}: {raw_body}")

  _check_http_status(raw_body, http_status)
  response_data = parse_response_body(raw_body)

  verified, signature_base = verify_response_signature(
    response_data, gateway_config, response_fields, trace_log
  )
  if not verified:
    if not tolerate_invalid_signature:
      raise SignatureError(
        "Result signature is incorrect. Please make sure that bank's public key in "
        "key provider is correct and up to date.",
        signature_base=signature_base,
        response=response_data,
      )
    logger.warning("Accepting response with invalid signature (tolerant mode)")

  check_result_code(response_data)

  if extensions:
    dispatch_extensions(response_data, gateway_config, extensions, trace_log)

  verified_response = VerifiedResponse(response_data)
  verified_response.signature_verified = verified
  return verified_response
