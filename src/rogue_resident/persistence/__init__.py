from .codec import SCHEMA_VERSION, RunSnapshot, decode_snapshot, encode_snapshot
from .store import SaveStore, default_save_dir

__all__ = ["SCHEMA_VERSION", "RunSnapshot", "SaveStore", "decode_snapshot", "default_save_dir", "encode_snapshot"]
