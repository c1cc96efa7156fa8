"""Prompt and message-part definitions for grounded PDF chat."""

import base64
from textwrap import dedent
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


CHAT_SYSTEM_PROMPT = dedent(
    """\
    You are an assistant that answers the user's questions after reading the full PDF below.
    Take the conversation so far into account and keep the dialogue natural.

    --- PDF CONTENT ---
    {pdf_text}
    --- END PDF CONTENT ---

    Using the content above, answer the user's next question. Always format the reply as
    Markdown, using headings, lists and bold text where they make it easier to read."""
)


def build_system_preamble(pdf_text: str) -> str:
    """Embed the whole extracted document into the per-turn preamble."""
    return CHAT_SYSTEM_PROMPT.format(pdf_text=pdf_text)


class _WireModel(BaseModel):
    """Serializes with the camelCase field names the Gemini REST API expects."""

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class TextPart(_WireModel):
    kind: Literal["text"] = Field(default="text", exclude=True)
    text: str


class InlineData(_WireModel):
    mime_type: str = Field(description="IANA media type, e.g. image/png.")
    data: str = Field(description="Base64-encoded payload.")


class InlineImagePart(_WireModel):
    kind: Literal["image"] = Field(default="image", exclude=True)
    inline_data: InlineData

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> "InlineImagePart":
        encoded = base64.b64encode(data).decode("ascii")
        return cls(inline_data=InlineData(mime_type=mime_type, data=encoded))


Part = Annotated[Union[TextPart, InlineImagePart], Field(discriminator="kind")]


class ConversationTurn(_WireModel):
    """One user or model contribution to the conversation."""

    role: Literal["user", "model"]
    parts: List[Part] = Field(min_length=1)

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


class ImageAttachment(BaseModel):
    """Raw image bytes attached to a user turn (e.g. a PDF snippet)."""

    data: bytes
    mime_type: str = "image/png"

    def to_part(self) -> InlineImagePart:
        return InlineImagePart.from_bytes(self.data, self.mime_type)
