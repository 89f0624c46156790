"""
CSOB Gateway Client -- Key Providers

Abstract source of PEM key material. The signer/verifier only ever calls
get_key(), so it does not care whether the key lives in a file or in memory.
Key material is fetched again on every signing/verification call.
"""

import os
from abc import ABC, abstractmethod

from services.gateway_errors import KeyMaterialError


class KeyProvider(ABC):
  """Abstract base for PEM key sources."""

  @abstractmethod
  def get_key(self):
    """
    Return the PEM-encoded key material as a string.

    Raises: KeyMaterialError if the material cannot be obtained.
    """
    ...

  @abstractmethod
  def __str__(self):
    """Human-readable description for logs. Must never contain the key itself."""
    ...


class KeyFileProvider(KeyProvider):
  """Reads the key from a file on every call."""

  def __init__(self, key_file_path):
    self.key_file_path = key_file_path

  def get_key(self):
    if not self.key_file_path or not os.path.isfile(self.key_file_path):
      raise KeyMaterialError(f"Key file \"{self.key_file_path}\" not found or not readable.")
    try:
      with open(self.key_file_path, "r", encoding="ascii") as key_file:
        return key_file.read()
    except (OSError, UnicodeDecodeError) as read_error:
      raise KeyMaterialError(
        f"Key file \"{self.key_file_path}\" not found or not readable: {read_error}"
      ) from read_error

  def __str__(self):
    return f"key file {self.key_file_path}"


class KeyStringProvider(KeyProvider):
  """Holds the key in memory."""

  def __init__(self, key_material):
    if isinstance(key_material, bytes):
      key_material = key_material.decode("ascii")
    self._key_material = key_material

  def get_key(self):
    if not self._key_material:
      raise KeyMaterialError("In-memory key material is empty.")
    return self._key_material

  def __str__(self):
    return "in-memory key"


def as_key_provider(key_source):
  """Accept a KeyProvider or a file path string; anything else is a caller error."""
  if isinstance(key_source, KeyProvider):
    return key_source
  if isinstance(key_source, str):
    return KeyFileProvider(key_source)
  raise TypeError(f"Expected a KeyProvider or a key file path, got {type(key_source).__name__}")
