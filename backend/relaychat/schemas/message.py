"""Message schemas shared by the store, the durable slot and the relay wire."""

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError("timestamp is outside the representable UTC range") from exc


def _require_text(value: str) -> str:
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("text cannot be blank")
    return trimmed


class MessageAuthor(BaseModel):
    """Identity snapshot copied onto every message."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    avatar_url: str = ""


class MessageDraft(BaseModel):
    """Locally authored message before it has an id or timestamp."""

    text: str = Field(min_length=1)
    author_id: str = Field(min_length=1)
    author_name: str = Field(min_length=1)
    author_avatar_url: str = ""

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        return _require_text(value)

    @classmethod
    def from_author(cls, author: MessageAuthor, text: str) -> "MessageDraft":
        return cls(
            text=text,
            author_id=author.id,
            author_name=author.name,
            author_avatar_url=author.avatar_url,
        )


class MessageRead(BaseModel):
    """Finalized message as stored, persisted and relayed."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    author_id: str = Field(validation_alias=AliasChoices("author_id", "user_id"))
    author_name: str = Field(validation_alias=AliasChoices("author_name", "user_name"))
    author_avatar_url: str = Field(
        default="",
        validation_alias=AliasChoices("author_avatar_url", "user_avatar"),
    )
    created_at: datetime

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text cannot be blank")
        return value

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)


MessageList = TypeAdapter(list[MessageRead])
