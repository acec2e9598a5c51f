"""Error taxonomy shared by the store, the service and the router."""
from __future__ import annotations

from typing import Optional

from .models import MessageRef, RecordKind

GENERIC_FAILURE = "Something went wrong while handling that. Please try again."

_CREATE_COMMANDS = {RecordKind.INTRODUCTION: "/self", RecordKind.LINK_SET: "/sns"}
_EDIT_COMMANDS = {RecordKind.INTRODUCTION: "/self-edit", RecordKind.LINK_SET: "/sns-edit"}
_KIND_LABELS = {RecordKind.INTRODUCTION: "introduction", RecordKind.LINK_SET: "link set"}


class IntroBotError(RuntimeError):
    """Base class for failures that carry a message meant for the member."""

    user_message = GENERIC_FAILURE

    def __str__(self) -> str:
        return self.args[0] if self.args else self.user_message


class NotFound(IntroBotError):
    """No record of this kind exists for the owner."""

    def __init__(self, kind: RecordKind, owner_id: str) -> None:
        super().__init__(f"No {kind.value} record for {owner_id}")
        self.kind = kind
        self.owner_id = owner_id
        self.user_message = (
            f"No {_KIND_LABELS[kind]} found. Create one with `{_CREATE_COMMANDS[kind]}` first."
        )


class AlreadyExists(IntroBotError):
    """A record of this kind already exists for the owner."""

    def __init__(
        self, kind: RecordKind, owner_id: str, message: Optional[MessageRef] = None
    ) -> None:
        super().__init__(f"{kind.value} record for {owner_id} already exists")
        self.kind = kind
        self.owner_id = owner_id
        self.message = message
        article = "an" if kind is RecordKind.INTRODUCTION else "a"
        text = (
            f"You already have {article} {_KIND_LABELS[kind]}! "
            f"Use `{_EDIT_COMMANDS[kind]}` to edit it."
        )
        if message is not None:
            text += f"\n[View your post]({message.jump_url})"
        self.user_message = text


class MissingPrerequisite(IntroBotError):
    """A link set was attempted before the owner introduced themselves."""

    def __init__(self, owner_id: str, introduction_channel: Optional[int]) -> None:
        super().__init__(f"{owner_id} has no introduction yet")
        self.owner_id = owner_id
        self.introduction_channel = introduction_channel
        if introduction_channel is not None:
            self.user_message = (
                f"Please introduce yourself in <#{introduction_channel}> first!"
            )
        else:
            self.user_message = "Please introduce yourself with `/self` first!"


class ValidationFailed(IntroBotError):
    """Submitted form values broke a structural rule."""

    def __init__(self, field: str, user_message: str) -> None:
        super().__init__(f"invalid {field}")
        self.field = field
        self.user_message = user_message


class ChannelMismatch(IntroBotError):
    """A record command or widget was used outside its designated channel."""

    def __init__(self, kind: RecordKind, channel_id: Optional[int]) -> None:
        super().__init__(f"{kind.value} used outside its channel")
        self.kind = kind
        self.channel_id = channel_id
        label = "Introductions" if kind is RecordKind.INTRODUCTION else "Link sharing"
        if channel_id is None:
            self.user_message = f"{label} is not configured on this server."
        else:
            self.user_message = f"{label} is only available in <#{channel_id}>."


class FormExpired(IntroBotError):
    """A form submission arrived whose stashed context is gone."""

    user_message = "That form has expired. Please open it again."


class ExternalOperationFailed(IntroBotError):
    """A publish, delete or fetch against Discord failed."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} failed")
        self.operation = operation
        self.user_message = (
            "Discord did not accept that request. Please try again in a moment."
        )


__all__ = [
    "AlreadyExists",
    "ChannelMismatch",
    "ExternalOperationFailed",
    "FormExpired",
    "GENERIC_FAILURE",
    "IntroBotError",
    "MissingPrerequisite",
    "NotFound",
    "ValidationFailed",
]
