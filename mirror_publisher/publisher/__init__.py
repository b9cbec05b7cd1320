"""Publisher package - walks the mirror and drives the upload pool."""
from .core import EngineState, PublishEngine, publish
from .paths import append_url_path_segment
from .tree_walker import TreeWalker

__all__ = ["EngineState", "PublishEngine", "publish", "append_url_path_segment", "TreeWalker"]
