"""
CSOB Gateway Client -- Log Sinks

Destinations for the two message streams the client produces:

  - business log: one line per operation ("payment/init OK, got payId ...")
  - trace log:    exact wire contents (signature bases, URLs, JSON bodies).
                  Sensitive -- disabled unless explicitly configured.

A sink is resolved once, when the client is configured, from whatever the
caller passed: None, a file path, a callable, a logging.Logger, or a sink.
"""

import datetime
import logging
import os
import threading


class NullSink:
  """Discards everything."""

  enabled = False

  def write(self, message):
    pass

  def __repr__(self):
    return "NullSink()"


class FileSink:
  """Appends timestamped lines to a file, creating parent directories as needed."""

  enabled = True

  def __init__(self, log_file_path):
    self.log_file_path = log_file_path
    self._write_lock = threading.Lock()
    log_directory = os.path.dirname(os.path.abspath(log_file_path))
    os.makedirs(log_directory, exist_ok=True)

  def write(self, message):
    timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    tagged_message = f"{timestamp:<20} {message}\n"
    with self._write_lock:
      with open(self.log_file_path, "a", encoding="utf-8") as log_file:
        log_file.write(tagged_message)

  def __repr__(self):
    return f"FileSink({self.log_file_path!r})"


class CallbackSink:
  """Forwards each message to a caller-supplied function."""

  enabled = True

  def __init__(self, callback):
    self.callback = callback

  def write(self, message):
    self.callback(message)

  def __repr__(self):
    return f"CallbackSink({self.callback!r})"


class LoggerSink:
  """Forwards each message to a standard library logger."""

  enabled = True

  def __init__(self, target_logger, level=logging.INFO):
    self.target_logger = target_logger
    self.level = level

  def write(self, message):
    self.target_logger.log(self.level, "%s", message)

  def __repr__(self):
    return f"LoggerSink({self.target_logger.name!r})"


NULL_SINK = NullSink()

_SINK_TYPES = (NullSink, FileSink, CallbackSink, LoggerSink)


def resolve_log_sink(target):
  """Turn a caller-supplied log target into a sink."""
  if target is None or target is False or target == "":
    return NULL_SINK
  if isinstance(target, _SINK_TYPES):
    return target
  if isinstance(target, logging.Logger):
    return LoggerSink(target)
  if isinstance(target, (str, os.PathLike)):
    return FileSink(os.fspath(target))
  if callable(target):
    return CallbackSink(target)
  raise TypeError(f"Cannot use {type(target).__name__} as a log target")
