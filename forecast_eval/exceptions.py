"""Exceptions raised on precondition violations"""


class LengthMismatchError(ValueError):
    """Aligned input sequences have different lengths"""

    def __init__(self, name1: str, len1: int, name2: str, len2: int):
        self.lengths = (len1, len2)
        super().__init__(
            f"{name1} and {name2} must have the same length "
            f"(got {len1} and {len2})"
        )
