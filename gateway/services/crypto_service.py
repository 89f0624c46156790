"""
CSOB Gateway Client -- Crypto Service

RSA signing and verification of signature base strings (PKCS#1 v1.5).
Signatures travel Base64-encoded. The digest algorithm is always a parameter:
requests and responses each pick their own from the protocol version.
"""

import base64
import binascii
import logging

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from services.gateway_errors import KeyMaterialError, SigningError, VerificationError

logger = logging.getLogger("csob.crypto")

HASH_SHA1 = "sha1"
HASH_SHA256 = "sha256"

_HASH_ALGORITHMS = {
  HASH_SHA1: hashes.SHA1,
  HASH_SHA256: hashes.SHA256,
}


def get_hash_algorithm(hash_method):
  """Map "sha1" / "sha256" to a cryptography hash instance."""
  try:
    return _HASH_ALGORITHMS[str(hash_method).lower()]()
  except KeyError:
    raise ValueError(
      f"Unsupported hash method '{hash_method}' -- expected one of {sorted(_HASH_ALGORITHMS)}"
    ) from None


def _as_bytes(value):
  if isinstance(value, bytes):
    return value
  return value.encode("utf-8")


# ---------------------------------------------------------------------------
# Key loading
# ---------------------------------------------------------------------------

def load_private_key(private_key_pem, private_key_password=None):
  """
  Parse a PEM private key, decrypting it with the passphrase if one is given.
  Raises KeyMaterialError on anything that is not a usable RSA private key.
  """
  if not private_key_pem:
    raise KeyMaterialError("Private key material is empty.")

  password = _as_bytes(private_key_password) if private_key_password else None
  try:
    private_key = serialization.load_pem_private_key(_as_bytes(private_key_pem), password=password)
  except (ValueError, TypeError, UnsupportedAlgorithm) as parse_error:
    raise KeyMaterialError(
      f"Private key could not be loaded. Please make sure it is a valid PEM private key "
      f"and the password is correct: {parse_error}"
    ) from parse_error

  if not isinstance(private_key, rsa.RSAPrivateKey):
    raise KeyMaterialError(f"Private key must be an RSA key, got {type(private_key).__name__}.")
  return private_key


def load_public_key(public_key_pem):
  """
  Parse a PEM public key. A PEM X.509 certificate is accepted too; its
  subject public key is used.
  """
  if not public_key_pem:
    raise KeyMaterialError("Public key material is empty.")

  pem_bytes = _as_bytes(public_key_pem)
  try:
    if b"BEGIN CERTIFICATE" in pem_bytes:
      public_key = x509.load_pem_x509_certificate(pem_bytes).public_key()
    else:
      public_key = serialization.load_pem_public_key(pem_bytes)
  except (ValueError, TypeError, UnsupportedAlgorithm) as parse_error:
    raise KeyMaterialError(f"Public key could not be loaded: {parse_error}") from parse_error

  if not isinstance(public_key, rsa.RSAPublicKey):
    raise KeyMaterialError(f"Public key must be an RSA key, got {type(public_key).__name__}.")
  return public_key


# ---------------------------------------------------------------------------
# Sign / verify
# ---------------------------------------------------------------------------

def sign_string(text_to_sign, private_key_pem, private_key_password, hash_method):
  """
  Sign the UTF-8 bytes of `text_to_sign`.

  Returns: the signature encoded with Base64 (str).
  Raises: KeyMaterialError for unusable keys, SigningError if signing itself fails.
  """
  hash_algorithm = get_hash_algorithm(hash_method)
  private_key = load_private_key(private_key_pem, private_key_password)

  try:
    signature = private_key.sign(_as_bytes(text_to_sign), padding.PKCS1v15(), hash_algorithm)
  except (ValueError, TypeError, UnsupportedAlgorithm) as signing_error:
    raise SigningError(f"Signing failed: {signing_error}") from signing_error

  return base64.b64encode(signature).decode("ascii")


def verify_signature(text_to_verify, signature_in_base64, public_key_pem, hash_method):
  """
  Verify a Base64 signature over the UTF-8 bytes of `text_to_verify`.

  Returns: True if the signature matches, False if it does not (including a
  signature that is not valid Base64).
  Raises: KeyMaterialError for unusable keys, VerificationError if the
  verification engine itself faults.
  """
  hash_algorithm = get_hash_algorithm(hash_method)
  public_key = load_public_key(public_key_pem)

  try:
    signature = base64.b64decode(signature_in_base64 or "", validate=True)
  except (binascii.Error, ValueError):
    logger.warning("Signature is not valid Base64")
    return False

  try:
    public_key.verify(signature, _as_bytes(text_to_verify), padding.PKCS1v15(), hash_algorithm)
  except InvalidSignature:
    return False
  except (ValueError, TypeError, UnsupportedAlgorithm) as verification_error:
    raise VerificationError(
      f"Verification of signature failed: {verification_error}"
    ) from verification_error

  return True
