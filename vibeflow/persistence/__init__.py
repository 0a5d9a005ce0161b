from .interface import ChangeEvent, ChangeFeed, KeyValueStorage, RowStore
from .local import LocalGateway
from .migration import load_local_state, load_remote_state
from .remote import RemoteGateway, rows_to_state

__all__ = [
    "KeyValueStorage",
    "RowStore",
    "ChangeFeed",
    "ChangeEvent",
    "LocalGateway",
    "RemoteGateway",
    "rows_to_state",
    "load_local_state",
    "load_remote_state",
]
