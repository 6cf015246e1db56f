"""Key-value store client (RESP2 wire protocol)."""

from message_debounce.store.client import StoreClient
from message_debounce.store.resp import RespError, RespParser, encode_command

__all__ = [
    "StoreClient",
    "RespError",
    "RespParser",
    "encode_command",
]
