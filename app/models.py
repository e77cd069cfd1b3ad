"""
Pydantic models for paste submission and storage.
"""
from pydantic import BaseModel, Field
from typing import Optional

MAX_EXPIRES = 0xFFFFFFFF


class SubmittedForm(BaseModel):
    """Raw form fields as posted by the client."""
    text: str
    extension: Optional[str] = None
    expires: Optional[str] = None  # seconds, untrusted
    password: str = ""
    title: str = ""
    burn_after_reading: Optional[str] = None  # 'on' when the checkbox is ticked


class Entry(BaseModel):
    """Normalized paste, ready to be written to the database."""
    text: str
    extension: Optional[str] = None
    expires: Optional[int] = Field(None, gt=0, le=MAX_EXPIRES)
    burn_after_reading: Optional[bool] = None
    uid: Optional[int] = None
    password: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_form(cls, form: SubmittedForm) -> "Entry":
        """
        Normalize a submitted form.

        Never fails: a malformed expiry is dropped and any burn-after-reading
        value other than 'on' means False. The uid is left for the caller.
        """
        burn_after_reading = None
        if form.burn_after_reading is not None:
            burn_after_reading = form.burn_after_reading == "on"

        return cls(
            text=form.text,
            extension=form.extension,
            expires=parse_expires(form.expires),
            burn_after_reading=burn_after_reading,
            uid=None,
            password=form.password or None,
            title=form.title or None,
        )


def parse_expires(value: Optional[str]) -> Optional[int]:
    """Parse an expiry token as a non-zero unsigned 32-bit integer, or None."""
    if value is None:
        return None

    digits = value[1:] if value.startswith("+") else value
    if not digits or not (digits.isascii() and digits.isdigit()):
        return None

    seconds = int(digits)
    if seconds == 0 or seconds > MAX_EXPIRES:
        return None
    return seconds


class StoredEntry(BaseModel):
    """A paste as read back from the database."""
    text: str
    extension: Optional[str] = None
    title: Optional[str] = None
    burn_after_reading: bool = False
    protected: bool = False
    uid: Optional[int] = None
