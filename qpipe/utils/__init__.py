"""Utility functions for qpipe."""

from qpipe.utils.bits import flip_bits, sub_to_full
from qpipe.utils.parallel import fill_chunked

__all__ = ["flip_bits", "sub_to_full", "fill_chunked"]
