"""Durable orchestration store: append log, mirror and the engine over both."""

from crocodile.engine.append_log import AppendLog
from crocodile.engine.mirror import MirrorStore
from crocodile.engine.orchestration import CrocEngine, open_engine

__all__ = ["AppendLog", "CrocEngine", "MirrorStore", "open_engine"]
