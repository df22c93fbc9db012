# ruletable utils
from ruletable.utils.crypto import derive_key

__all__ = [
    "derive_key",
]
