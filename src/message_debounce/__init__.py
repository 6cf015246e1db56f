"""
Message Debounce - Coalesces bursts of session messages into a single output.

Every incoming message is handled by an independent execution. Executions for
the same session coordinate only through a Redis-compatible key-value store, so
only the execution triggered by the most recent message is allowed to flush the
buffered messages once its silence window has elapsed.
"""

__version__ = "1.0.0"
