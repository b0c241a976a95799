"""
Client-side form rules. Failures raise ValidationError before any request is sent.
"""
from __future__ import annotations

import mimetypes
import re
from pathlib import Path
from typing import List, Optional

from koala_wiki.api.errors import FieldError, ValidationError

MAX_TAGS = 10
MAX_TAG_LENGTH = 20
MAX_TITLE_LENGTH = 200
MAX_COMMENT_LENGTH = 1000
MAX_NICKNAME_LENGTH = 20
MAX_EMAIL_LENGTH = 100
MIN_PASSWORD_LENGTH = 6
MAX_IMAGE_BYTES = 5 * 1024 * 1024

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# letters, digits, hiragana, katakana, CJK ideographs and spaces
_NICKNAME = re.compile(r"^[a-zA-Z0-9\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\s]+$")


class TagRejected(ValidationError):
    pass


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL.match(email or ""))


def is_valid_nickname(nickname: str) -> bool:
    return 1 <= len(nickname or "") <= MAX_NICKNAME_LENGTH and bool(_NICKNAME.match(nickname))


def is_valid_tag(tag: str) -> bool:
    return 1 <= len(tag.strip()) <= MAX_TAG_LENGTH and tag == tag.strip()


def add_tag(tags: List[str], tag: str) -> List[str]:
    """
    Return a new tag list with `tag` appended. The input list is never modified;
    an over-long tag, a duplicate, or an 11th tag raises TagRejected.
    """
    t = (tag or "").strip()
    if not t:
        raise TagRejected("Tag is empty", field_errors=[FieldError("tags", "Tag is empty")])
    if len(t) > MAX_TAG_LENGTH:
        msg = f"Tags can be at most {MAX_TAG_LENGTH} characters"
        raise TagRejected(msg, field_errors=[FieldError("tags", msg)])
    if t in tags:
        msg = f"Tag '{t}' is already added"
        raise TagRejected(msg, field_errors=[FieldError("tags", msg)])
    if len(tags) >= MAX_TAGS:
        msg = f"At most {MAX_TAGS} tags are allowed"
        raise TagRejected(msg, field_errors=[FieldError("tags", msg)])
    return [*tags, t]


def validate_tags(tags: List[str]) -> None:
    if len(tags) > MAX_TAGS:
        raise TagRejected(f"At most {MAX_TAGS} tags are allowed")
    bad = [t for t in tags if not is_valid_tag(t)]
    if bad:
        raise TagRejected(f"Invalid tag: {bad[0]!r}")


def _raise_if(errors: List[FieldError], message: str) -> None:
    if errors:
        raise ValidationError(message, field_errors=errors)


def validate_login(email: str, password: str) -> None:
    errors: List[FieldError] = []
    if not (email or "").strip():
        errors.append(FieldError("email", "Email is required"))
    if not (password or "").strip():
        errors.append(FieldError("password", "Password is required"))
    _raise_if(errors, "Enter your email and password")


def validate_registration(nickname: str, email: str, password: str) -> None:
    errors: List[FieldError] = []

    if not (nickname or "").strip():
        errors.append(FieldError("nickname", "Nickname is required"))
    elif len(nickname) > MAX_NICKNAME_LENGTH:
        errors.append(FieldError("nickname", f"Nickname must be {MAX_NICKNAME_LENGTH} characters or fewer"))
    elif not _NICKNAME.match(nickname):
        errors.append(FieldError("nickname", "Nickname contains characters that are not allowed"))

    if not (email or "").strip():
        errors.append(FieldError("email", "Email is required"))
    elif not is_valid_email(email):
        errors.append(FieldError("email", "Enter a valid email address"))
    elif len(email) > MAX_EMAIL_LENGTH:
        errors.append(FieldError("email", f"Email must be {MAX_EMAIL_LENGTH} characters or fewer"))

    if not (password or "").strip():
        errors.append(FieldError("password", "Password is required"))
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(FieldError("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"))

    _raise_if(errors, "Please check the highlighted fields")


def validate_title(title: str) -> None:
    if not (title or "").strip():
        raise ValidationError("Enter a title", field_errors=[FieldError("title", "Title is required")])
    if len(title.strip()) > MAX_TITLE_LENGTH:
        msg = f"Title must be {MAX_TITLE_LENGTH} characters or fewer"
        raise ValidationError(msg, field_errors=[FieldError("title", msg)])


def validate_content(content: str) -> None:
    if not (content or "").strip():
        raise ValidationError("Enter the page body", field_errors=[FieldError("content", "Content is required")])


def validate_page(title: str, content: str) -> None:
    validate_title(title)
    validate_content(content)


def validate_comment(content: str) -> None:
    if not (content or "").strip():
        raise ValidationError("Enter a comment", field_errors=[FieldError("content", "Comment is required")])
    if len(content) > MAX_COMMENT_LENGTH:
        msg = f"Comments must be {MAX_COMMENT_LENGTH} characters or fewer"
        raise ValidationError(msg, field_errors=[FieldError("content", msg)])


def validate_nickname(nickname: str) -> None:
    if not (nickname or "").strip():
        raise ValidationError("Enter a nickname", field_errors=[FieldError("nickname", "Nickname is required")])
    if not is_valid_nickname(nickname.strip()):
        msg = "Nickname must be 1-20 letters, digits, kana/kanji or spaces"
        raise ValidationError(msg, field_errors=[FieldError("nickname", msg)])


def validate_image(path: Path | str, *, content_type: Optional[str] = None, max_bytes: int = MAX_IMAGE_BYTES) -> str:
    """
    Check an image before upload; returns its MIME type.
    """
    p = Path(path)
    mime = content_type or mimetypes.guess_type(p.name)[0] or ""
    if not mime.startswith("image/"):
        raise ValidationError("Select an image file", field_errors=[FieldError("image", "Not an image")])
    if not p.is_file():
        raise ValidationError(f"File not found: {p}", field_errors=[FieldError("image", "File not found")])
    if p.stat().st_size > max_bytes:
        msg = f"Files must be {format_file_size(max_bytes)} or smaller"
        raise ValidationError(msg, field_errors=[FieldError("image", msg)])
    return mime


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    size = float(num_bytes)
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    text = f"{size:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"
