from .debug_bundle import create_debug_bundle, save_debug_snapshot
from .delays import human_pause, random_delay_ms
from .numbers import parse_grouped_int

__all__ = ["create_debug_bundle", "save_debug_snapshot", "human_pause", "random_delay_ms", "parse_grouped_int"]
