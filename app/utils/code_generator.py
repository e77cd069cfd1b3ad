"""
Random paste identifiers and their URL form.
"""
import secrets
import string

# 64 symbols, one per 6-bit group
CHAR_TABLE = string.ascii_lowercase + string.ascii_uppercase + string.digits + "-+"
ID_LENGTH = 6


class Identifier:
    """
    A 32-bit paste identifier.

    The text form is six characters: five 6-bit groups from the high bits,
    followed by one character for the remaining two low bits.
    """

    __slots__ = ("value",)

    def __init__(self, value: int):
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"Identifier out of range: {value}")
        self.value = value

    def __str__(self) -> str:
        chars = [CHAR_TABLE[(self.value >> shift) & 0x3F] for shift in (26, 20, 14, 8, 2)]
        chars.append(CHAR_TABLE[self.value & 0x3])
        return "".join(chars)

    def __repr__(self) -> str:
        return f"Identifier({str(self)!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Identifier) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)

    @classmethod
    def from_str(cls, text: str) -> "Identifier":
        """
        Parse the six-character form back into an identifier.

        Raises:
            ValueError: If the text is not a valid identifier
        """
        if len(text) != ID_LENGTH:
            raise ValueError(f"Identifier must be {ID_LENGTH} characters")

        value = 0
        for pos, char in enumerate(text):
            index = CHAR_TABLE.find(char)
            if index < 0:
                raise ValueError(f"Invalid identifier character: {char!r}")
            if pos == ID_LENGTH - 1:
                if index > 0x3:
                    raise ValueError(f"Invalid identifier character: {char!r}")
                value = (value << 2) | index
            else:
                value = (value << 6) | index
        return cls(value)

    def to_url_path(self, entry) -> str:
        """Build the URL path segment, keeping the entry's extension if it has one."""
        if entry.extension is not None:
            return f"{self}.{entry.extension}"
        return str(self)


def generate_id() -> Identifier:
    """
    Generate a uniformly random identifier.

    Blocking call; request handlers dispatch it to the thread pool.
    """
    return Identifier(secrets.randbits(32))


def parse_url_path(path: str) -> Identifier:
    """
    Extract the identifier from a path segment like "aBc-+0.rs".

    Raises:
        ValueError: If the segment does not start with a valid identifier
    """
    return Identifier.from_str(path.split(".", 1)[0])
