"""
Compiled Move module decoding.
"""

from .deserializer import decode_module_map, deserialize_module
from .format import CompiledModule
from .normalize import normalize_module

__all__ = [
    "CompiledModule",
    "decode_module_map",
    "deserialize_module",
    "normalize_module",
]
