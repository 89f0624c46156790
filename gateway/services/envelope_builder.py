"""
CSOB Gateway Client -- Envelope Builder

Produces the final signed payload for one API call:

  1. fill "dttm" / "merchantId" when the payload declares them empty
  2. build, sign and attach every extension's own request object
     (collected into the payload's "extensions" array, in extension order)
  3. build the outer signature base (request field spec, or natural key
     order), sign it, attach "signature"
  4. render it for the wire: URL path segments for GET, JSON body otherwise

Once signed, the payload is not touched again. Changing any field means
building a new envelope (base string and signature are always recomputed
together).
"""

import datetime
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

import config
from services import crypto_service
from services.log_sinks import NULL_SINK
from services.signature_base import (
  create_signature_base,
  parse_field_spec,
  scalar_token,
  without_signature,
)

logger = logging.getLogger("csob.envelope")

HTTP_GET = "GET"
HTTP_POST = "POST"
HTTP_PUT = "PUT"
_HTTP_METHODS = {HTTP_GET, HTTP_POST, HTTP_PUT}


def current_dttm():
  """Current local time in the gateway's yyyyMMddHHmmss format."""
  return datetime.datetime.now().strftime(config.DTTM_FORMAT)


def _is_empty(value):
  return value is None or value == ""


@dataclass(frozen=True)
class SignedRequest:
  """A signed envelope ready for the transport."""

  api_method: str
  http_method: str
  url: str
  payload: Dict[str, Any]
  signature_base: str
  body: Optional[str] = None


# ---------------------------------------------------------------------------
# Signing helpers
# ---------------------------------------------------------------------------

def sign_base_string(gateway_config, base_string, hash_method=None):
  """Sign with the merchant key. The key is fetched from its provider on every call."""
  return crypto_service.sign_string(
    base_string,
    gateway_config.private_key.get_key(),
    gateway_config.private_key_password,
    hash_method or gateway_config.request_hash_method,
  )


def fill_envelope_defaults(payload, merchant_id, dttm):
  """Copy of the payload with declared-but-empty dttm / merchantId filled in."""
  filled_payload = dict(payload)
  if "dttm" in filled_payload and _is_empty(filled_payload["dttm"]):
    filled_payload["dttm"] = dttm
  if "merchantId" in filled_payload and _is_empty(filled_payload["merchantId"]):
    filled_payload["merchantId"] = merchant_id
  return filled_payload


def build_extension_request_data(extension, gateway_config, dttm, trace_log=NULL_SINK):
  """
  The signed request object of one extension, or None if it sends nothing.

  Signed with the extension's own digest, falling back to the request digest
  of the main configuration.
  """
  extension_data = extension.build_request_data()
  if not extension_data:
    return None

  extension_data = without_signature(extension_data)
  if "dttm" in extension_data and _is_empty(extension_data["dttm"]):
    extension_data["dttm"] = dttm
  if "extension" in extension_data and _is_empty(extension_data["extension"]):
    extension_data["extension"] = extension.extension_id

  base_string = extension.request_signature_base(extension_data)
  trace_log.write(
    f"Signing request of extension {extension.extension_id}, base string is: {base_string}"
  )

  extension_data["signature"] = sign_base_string(
    gateway_config,
    base_string,
    extension.hash_method or gateway_config.request_hash_method,
  )
  return extension_data


# ---------------------------------------------------------------------------
# Wire rendering
# ---------------------------------------------------------------------------

def build_get_url(method_url, signed_payload, request_fields=None):
  """
  Append the payload's top-level values as URL path segments, in field spec
  order (or key order), skipping absent/None values, signature last.

  Only scalar top-level fields are URL-safe; keeping nested objects out of GET
  requests is the caller's job.
  """
  if request_fields:
    ordered_keys = [field.top_level_key for field in parse_field_spec(request_fields)]
  else:
    ordered_keys = list(signed_payload.keys())

  url = method_url
  seen_keys = set()
  for key in ordered_keys:
    if key == "signature" or key in seen_keys:
      continue
    seen_keys.add(key)
    value = signed_payload.get(key)
    if value is None:
      continue
    url += "/" + quote_plus(scalar_token(value))

  if signed_payload.get("signature"):
    url += "/" + quote_plus(signed_payload["signature"])
  return url


def encode_json_body(signed_payload):
  # None values stay in the JSON even though the signature base skips them
  return json.dumps(signed_payload, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def build_signed_request(
  gateway_config,
  api_method,
  payload,
  request_fields=None,
  extensions=(),
  http_method=HTTP_POST,
  trace_log=NULL_SINK,
):
  """
  Build and sign the envelope for one call.

  Args:
    gateway_config: GatewayConfig with merchant id and keys.
    api_method: e.g. "payment/init".
    payload: ordered mapping of request fields. Any existing "signature" is dropped.
    request_fields: ordered field spec for the signature base, or None for key order.
    extensions: Extension objects whose request data should be sent.
    http_method: "GET", "POST" or "PUT".
    trace_log: sink for base strings, URL and body.

  Returns: SignedRequest
  """
  http_method = http_method.upper()
  if http_method not in _HTTP_METHODS:
    raise ValueError(f"Unsupported HTTP method '{http_method}'")

  dttm = current_dttm()
  signed_payload = fill_envelope_defaults(
    without_signature(payload), gateway_config.merchant_id, dttm
  )

  extension_objects = []
  for extension in extensions or ():
    extension_data = build_extension_request_data(extension, gateway_config, dttm, trace_log)
    if extension_data:
      extension_objects.append(extension_data)
  if extension_objects:
    signed_payload["extensions"] = list(signed_payload.get("extensions") or []) + extension_objects

  signature_base = create_signature_base(signed_payload, request_fields)
  trace_log.write(f"Signing request of {api_method}, base string is: {signature_base}")
  signed_payload["signature"] = sign_base_string(gateway_config, signature_base)

  method_url = gateway_config.get_api_method_url(api_method)
  body = None
  if http_method == HTTP_GET:
    url = build_get_url(method_url, signed_payload, request_fields)
  else:
    url = method_url
    body = encode_json_body(signed_payload)

  trace_log.write(f"URL to send request to: {url}")
  if body is not None:
    trace_log.write(f"JSON payload: {body}")

  logger.debug("Built %s envelope for %s", http_method, api_method)

  return SignedRequest(
    api_method=api_method,
    http_method=http_method,
    url=url,
    payload=signed_payload,
    signature_base=signature_base,
    body=body,
  )
