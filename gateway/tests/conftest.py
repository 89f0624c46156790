"""
Shared fixtures: RSA key pairs for the merchant and for the "bank", and a
helper that signs response data the way the gateway does.

Keys are generated once per test session; nothing touches the network.
"""

import os
import sys

# Add the gateway directory to the path so we can import config and services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

import config
from services import crypto_service
from services.gateway_config import GatewayConfig
from services.signature_base import create_signature_base, without_signature

MERCHANT_ID = "M1MIPS0000"
PRIVATE_KEY_PASSWORD = "correct horse"


def _generate_key_pair(password=None):
  private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
  if password:
    encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
  else:
    encryption = serialization.NoEncryption()
  private_pem = private_key.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=encryption,
  ).decode("ascii")
  public_pem = private_key.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
  ).decode("ascii")
  return private_pem, public_pem


@pytest.fixture(scope="session")
def merchant_keys():
  """(private_pem, public_pem) of the merchant."""
  return _generate_key_pair()


@pytest.fixture(scope="session")
def encrypted_merchant_keys():
  """(private_pem, public_pem) with the private key protected by PRIVATE_KEY_PASSWORD."""
  return _generate_key_pair(PRIVATE_KEY_PASSWORD)


@pytest.fixture(scope="session")
def private_key_password():
  return PRIVATE_KEY_PASSWORD


@pytest.fixture(scope="session")
def bank_keys():
  """(private_pem, public_pem) standing in for the gateway's key pair."""
  return _generate_key_pair()


@pytest.fixture
def make_config(merchant_keys, bank_keys):
  """Factory for GatewayConfig with in-memory keys."""

  def _make_config(url=config.GATEWAY_URL_TEST_1_9, **options):
    options.setdefault("return_url", "https://shop.example/return")
    options.setdefault("shop_name", "Test shop")
    return GatewayConfig.with_key_strings(
      MERCHANT_ID,
      merchant_keys[0],
      bank_keys[1],
      url=url,
      **options,
    )

  return _make_config


@pytest.fixture
def gateway_config(make_config):
  return make_config()


@pytest.fixture
def sign_as_bank(bank_keys):
  """Return a copy of `data` with a "signature" computed by the bank key."""

  def _sign_as_bank(data, fields=None, hash_method=crypto_service.HASH_SHA256):
    signed_data = without_signature(data)
    base_string = create_signature_base(signed_data, fields)
    signed_data["signature"] = crypto_service.sign_string(
      base_string, bank_keys[0], None, hash_method
    )
    return signed_data

  return _sign_as_bank
