from .pointer import decode_pointer, decode_pointer_grid, pointer_codes

__all__ = ["decode_pointer", "decode_pointer_grid", "pointer_codes"]
