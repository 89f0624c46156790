"""
CSOB Gateway Client -- Canonical signature base

Turns (possibly nested) payloads into the pipe-delimited string the gateway
signs and verifies. The same rules apply in both directions:

  - None contributes nothing (absent and null are the same thing).
  - Booleans become the literal tokens "true" / "false".
  - Other scalars are used verbatim, in their natural string form.
  - Mappings and lists are walked depth-first in their own order. Nothing is
    ever sorted. Containers nested deeper than MAX_LINEARIZATION_DEPTH
    contribute nothing.

Two modes:

  linearize(value)                       -- natural order of the structure
  linearize_with_order(data, fields)     -- explicit ordered field spec

A field spec is a list of key paths ("redirect.url"). A leading "?" marks the
field optional: when the path does not resolve (or resolves to None) an
optional field is skipped, while a required field yields one empty token.

Example:

  data = {"foo": "bar", "arr": {"a": "A", "b": "B"}}
  fields = ["foo", "arr.a", "somethingRequired", "?somethingOptional", "arr"]
  linearize_with_order(data, fields) == ["bar", "A", "", "A", "B"]
"""

from collections.abc import Mapping

SIGNATURE_BASE_SEPARATOR = "|"
MAX_LINEARIZATION_DEPTH = 10

_OPTIONAL_FIELD_MARKER = "?"
_KEY_PATH_SEPARATOR = "."


# ---------------------------------------------------------------------------
# Field paths
# ---------------------------------------------------------------------------

class FieldPath:
  """A key path into a nested payload. Subclassed by RequiredField / OptionalField."""

  optional = False

  def __init__(self, key_path):
    if isinstance(key_path, str):
      segments = tuple(key_path.split(_KEY_PATH_SEPARATOR))
    else:
      segments = tuple(key_path)
    if not segments or not all(segments):
      raise ValueError(f"Invalid key path: {key_path!r}")
    self.segments = segments

  @property
  def key_path(self):
    return _KEY_PATH_SEPARATOR.join(self.segments)

  @property
  def top_level_key(self):
    return self.segments[0]

  def __eq__(self, other):
    return (
      type(self) is type(other)
      and self.segments == other.segments
    )

  def __hash__(self):
    return hash((type(self).__name__, self.segments))

  def __repr__(self):
    return f"{type(self).__name__}({self.key_path!r})"

  def __str__(self):
    marker = _OPTIONAL_FIELD_MARKER if self.optional else ""
    return marker + self.key_path


class RequiredField(FieldPath):
  """Missing or None -> one empty-string placeholder token."""

  optional = False


class OptionalField(FieldPath):
  """Missing or None -> no token at all."""

  optional = True


def parse_field_path(field):
  """Parse "?a.b" / "a.b" into OptionalField / RequiredField. FieldPath instances pass through."""
  if isinstance(field, FieldPath):
    return field
  if not isinstance(field, str) or not field:
    raise ValueError(f"Invalid field spec entry: {field!r}")
  if field.startswith(_OPTIONAL_FIELD_MARKER):
    return OptionalField(field[len(_OPTIONAL_FIELD_MARKER):])
  return RequiredField(field)


def parse_field_spec(fields):
  """Parse a whole ordered field spec. None stays None (meaning: natural order)."""
  if fields is None:
    return None
  return tuple(parse_field_path(field) for field in fields)


def resolve_field_path(data, field_path):
  """
  Walk a nested mapping segment by segment.

  Returns (found, value). Short-circuits to (False, None) as soon as a segment
  is missing, explicitly None, or the current position is not a mapping.
  """
  position = data
  for segment in field_path.segments:
    if not isinstance(position, Mapping):
      return False, None
    if segment not in position or position[segment] is None:
      return False, None
    position = position[segment]
  return True, position


# ---------------------------------------------------------------------------
# Linearization
# ---------------------------------------------------------------------------

def scalar_token(value):
  """Canonical string form of a single scalar."""
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, str):
    return value
  return str(value)


def _is_container(value):
  return isinstance(value, (Mapping, list, tuple))


def linearize(value, _depth=0):
  """Flatten a value into an ordered list of string tokens (natural order)."""
  if value is None:
    return []
  if not _is_container(value):
    return [scalar_token(value)]
  if _depth > MAX_LINEARIZATION_DEPTH:
    return []

  items = value.values() if isinstance(value, Mapping) else value
  tokens = []
  for item in items:
    tokens.extend(linearize(item, _depth + 1))
  return tokens


def linearize_with_order(data, fields):
  """Flatten `data` following an explicit ordered field spec."""
  tokens = []
  for field_path in parse_field_spec(fields):
    found, value = resolve_field_path(data, field_path)
    if found:
      tokens.extend(linearize(value))
    elif not field_path.optional:
      tokens.append("")
  return tokens


def create_signature_base(data, fields=None):
  """
  Build the signature base string for `data`.

  With `fields` the explicit order is used; without it the mapping's own key
  order is used.
  """
  if fields:
    tokens = linearize_with_order(data, fields)
  else:
    tokens = linearize(data)
  return SIGNATURE_BASE_SEPARATOR.join(tokens)


def without_signature(data):
  """Copy of a mapping minus its "signature" key, preserving key order."""
  return {key: value for key, value in data.items() if key != "signature"}
