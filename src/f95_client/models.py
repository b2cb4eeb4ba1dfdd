"""
Data models for the F95 client.

This module defines the typed structures handed back to callers: the
outcome of a login attempt and the tree of elements parsed out of a post.
Using dataclasses provides clear structure, type hints, and easy JSON
serialization.
"""

from dataclasses import dataclass, field, asdict
from enum import IntEnum
from typing import List


class LoginCode(IntEnum):
    """Codes describing how a login attempt ended."""

    REQUIRE_2FA = 100
    REQUIRE_CAPTCHA = 101
    AUTH_SUCCESSFUL = 200
    AUTH_SUCCESSFUL_2FA = 201
    ALREADY_AUTHENTICATED = 202
    UNKNOWN_ERROR = 400
    INCORRECT_CREDENTIALS = 401
    INCORRECT_2FA_CODE = 402


@dataclass(frozen=True)
class LoginResult:
    """
    Outcome of an attempt to log in to the platform.

    Attributes:
        success: True if the user is now authenticated
        code: LoginCode describing the outcome
        message: Message returned by the platform (or built by the client)

    Example:
        result = LoginResult(
            success=False,
            code=LoginCode.INCORRECT_CREDENTIALS,
            message="Incorrect password. Please try again."
        )
    """
    success: bool
    code: LoginCode
    message: str = ""

    def to_dict(self) -> dict:
        """Convert the result to a dictionary for JSON serialization."""
        return {
            "success": self.success,
            "code": int(self.code),
            "code_name": self.code.name,
            "message": self.message,
        }


# Element types produced by the post parser
ROOT = "Root"
EMPTY = "Empty"
TEXT = "Text"
LINK = "Link"
IMAGE = "Image"
SPOILER = "Spoiler"


@dataclass
class PostElement:
    """
    A node of the tree parsed out of a post body.

    Attributes:
        type: One of "Root", "Empty", "Text", "Link", "Image", "Spoiler"
        name: Name of the element (the title, for spoilers)
        text: Text of the element, excluding its children
        content: Child elements, in document order

    Example:
        spoiler = PostElement(
            type="Spoiler",
            name="Changelog",
            content=[PostElement(type="Text", text="v0.2: new scenes")]
        )
    """
    type: str = EMPTY
    name: str = ""
    text: str = ""
    content: List["PostElement"] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True for elements that carry no information at all."""
        return not (self.name or self.text or self.content) and self.type in (EMPTY, TEXT)

    def to_dict(self) -> dict:
        """
        Convert the element to a dictionary for JSON serialization.

        asdict() recurses into ``content``, so the whole subtree is converted.
        """
        return asdict(self)


@dataclass
class Link(PostElement):
    """
    A link or an image found in a post.

    Attributes:
        href: Target of the link, or source of the image
    """
    type: str = LINK
    href: str = ""
