"""
CSOB Gateway Client -- Gateway Configuration

Immutable per-merchant configuration consumed by the signing pipeline.

The protocol version is either given explicitly or deduced from the gateway
URL ("https://.../api/v1.8" -> "1.8") the first time it is needed, then
memoized on the instance. Everything version-dependent (digest algorithm,
which optional fields exist) is derived from it.
"""

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Optional, Union

import config
from services.crypto_service import HASH_SHA1, HASH_SHA256, get_hash_algorithm
from services.key_provider import KeyProvider, KeyStringProvider, as_key_provider

# Version in which the gateway switched from SHA-1 to SHA-256
_SHA256_SINCE_VERSION = "1.8"

_URL_VERSION_PATTERN = re.compile(r"/v(\d+(?:\.\d+)?)/*$")


def parse_api_version(version):
  """'1.8' -> (1, 8); '1' -> (1, 0)."""
  parts = str(version).strip().split(".")
  try:
    numbers = [int(part) for part in parts]
  except ValueError:
    raise ValueError(f"Invalid API version '{version}'") from None
  if len(numbers) == 1:
    numbers.append(0)
  return tuple(numbers)


def deduce_api_version_from_url(url):
  """Read the protocol version from the URL suffix, e.g. '/api/v1.9' -> '1.9'."""
  match = _URL_VERSION_PATTERN.search(url or "")
  if not match:
    raise ValueError(
      f"Cannot deduce API version from gateway URL '{url}'. "
      "Set api_version explicitly."
    )
  major, minor = parse_api_version(match.group(1))
  return f"{major}.{minor}"


@dataclass(frozen=True)
class GatewayConfig:
  """Configuration for talking to the payment gateway."""

  merchant_id: str
  private_key: Union[KeyProvider, str]
  bank_public_key: Union[KeyProvider, str]
  private_key_password: Optional[str] = None
  shop_name: str = ""
  return_url: Optional[str] = None
  return_method: str = "POST"
  close_payment: bool = True
  url: str = config.GATEWAY_URL_TEST_LATEST
  api_version_override: Optional[str] = None
  hash_method_override: Optional[str] = None
  tls_verify: Union[bool, str] = True
  http_timeout_seconds: float = 30.0

  def __post_init__(self):
    # Frozen: normalize through object.__setattr__
    object.__setattr__(self, "private_key", as_key_provider(self.private_key))
    object.__setattr__(self, "bank_public_key", as_key_provider(self.bank_public_key))
    object.__setattr__(self, "url", self.url.rstrip("/"))
    if self.hash_method_override:
      get_hash_algorithm(self.hash_method_override)

  @classmethod
  def from_environment(cls):
    """Build a config from the CSOB_* environment values in config.py."""
    tls_verify = config.CSOB_TLS_VERIFY
    if tls_verify and config.CSOB_CA_BUNDLE:
      tls_verify = config.CSOB_CA_BUNDLE

    return cls(
      merchant_id=config.CSOB_MERCHANT_ID,
      private_key=config.CSOB_PRIVATE_KEY_FILE,
      bank_public_key=config.CSOB_BANK_PUBLIC_KEY_FILE,
      private_key_password=config.CSOB_PRIVATE_KEY_PASSWORD or None,
      shop_name=config.CSOB_SHOP_NAME,
      return_url=config.CSOB_RETURN_URL or None,
      return_method=config.CSOB_RETURN_METHOD,
      close_payment=config.CSOB_CLOSE_PAYMENT,
      url=config.CSOB_GATEWAY_URL,
      api_version_override=config.CSOB_API_VERSION or None,
      hash_method_override=config.CSOB_HASH_METHOD or None,
      tls_verify=tls_verify,
      http_timeout_seconds=config.CSOB_HTTP_TIMEOUT_SECONDS,
    )

  @classmethod
  def with_key_strings(cls, merchant_id, private_key_pem, bank_public_key_pem, **options):
    """Convenience constructor for keys held in memory."""
    return cls(
      merchant_id=merchant_id,
      private_key=KeyStringProvider(private_key_pem),
      bank_public_key=KeyStringProvider(bank_public_key_pem),
      **options,
    )

  # -----------------------------------------------------------------------
  # Protocol version
  # -----------------------------------------------------------------------

  @cached_property
  def api_version(self):
    """Protocol version as 'major.minor'. Computed once per instance."""
    if self.api_version_override:
      major, minor = parse_api_version(self.api_version_override)
      return f"{major}.{minor}"
    return deduce_api_version_from_url(self.url)

  def query_api_version(self, minimal_version):
    """True if the configured protocol version is at least `minimal_version`."""
    return parse_api_version(self.api_version) >= parse_api_version(minimal_version)

  def _version_default_hash_method(self):
    if self.query_api_version(_SHA256_SINCE_VERSION):
      return HASH_SHA256
    return HASH_SHA1

  @property
  def request_hash_method(self):
    """Digest used to sign outgoing requests."""
    return (self.hash_method_override or self._version_default_hash_method()).lower()

  @property
  def response_hash_method(self):
    """Digest used to verify gateway responses."""
    return (self.hash_method_override or self._version_default_hash_method()).lower()

  def get_api_method_url(self, api_method):
    return f"{self.url}/{api_method.strip('/')}"
