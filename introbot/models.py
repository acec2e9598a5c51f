"""Core data models for the introduction board."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .router import Responder


class RecordKind(str, Enum):
    INTRODUCTION = "introduction"
    LINK_SET = "link_set"


class EventKind(str, Enum):
    COMMAND = "command"
    FORM_SUBMIT = "form_submit"
    WIDGET_CLICK = "widget_click"


class Action(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    OPEN = "open"  # create or edit, decided when the widget is clicked


class Platform(str, Enum):
    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    GITHUB = "github"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _PLATFORM_NAMES[self]


_PLATFORM_NAMES = {
    Platform.TWITTER: "X (Twitter)",
    Platform.INSTAGRAM: "Instagram",
    Platform.TIKTOK: "TikTok",
    Platform.YOUTUBE: "YouTube",
    Platform.GITHUB: "GitHub",
    Platform.UNKNOWN: "Other",
}


class GuideStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    SEARCHING = "searching"
    ADOPTED = "adopted"
    CREATING = "creating"
    STEADY = "steady"


@dataclass(frozen=True)
class MessageRef:
    """Location of a published chat message."""

    guild_id: Optional[int]
    channel_id: int
    message_id: int

    @property
    def jump_url(self) -> str:
        guild = self.guild_id if self.guild_id is not None else "@me"
        return f"https://discord.com/channels/{guild}/{self.channel_id}/{self.message_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "channel_id": self.channel_id,
            "message_id": self.message_id,
        }

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> Optional["MessageRef"]:
        if not data:
            return None
        guild_id = data.get("guild_id")
        return MessageRef(
            guild_id=int(guild_id) if guild_id is not None else None,
            channel_id=int(data["channel_id"]),
            message_id=int(data["message_id"]),
        )


@dataclass(frozen=True)
class Actor:
    """The community member behind an inbound event."""

    id: str
    display_name: str
    avatar_url: Optional[str] = None

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class ClassifiedLink:
    platform: Platform
    handle: Optional[str]
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"platform": self.platform.value, "handle": self.handle, "url": self.url}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ClassifiedLink":
        return ClassifiedLink(
            platform=Platform(data["platform"]),
            handle=data.get("handle"),
            url=data["url"],
        )


@dataclass
class IntroductionRecord:
    owner_id: str
    message: MessageRef
    name: str
    contact_handle: str
    course: str
    cohort: str
    note: str
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "message": self.message.to_dict(),
            "name": self.name,
            "contact_handle": self.contact_handle,
            "course": self.course,
            "cohort": self.cohort,
            "note": self.note,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "IntroductionRecord":
        message = MessageRef.from_dict(data["message"])
        assert message is not None
        return IntroductionRecord(
            owner_id=str(data["owner_id"]),
            message=message,
            name=data.get("name", ""),
            contact_handle=data.get("contact_handle", ""),
            course=data.get("course", ""),
            cohort=data.get("cohort", ""),
            note=data.get("note", ""),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )


@dataclass
class LinkSetRecord:
    owner_id: str
    message: MessageRef
    urls: List[str]
    links: List[ClassifiedLink]
    introduction: Optional[MessageRef]
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "message": self.message.to_dict(),
            "urls": list(self.urls),
            "links": [link.to_dict() for link in self.links],
            "introduction": self.introduction.to_dict() if self.introduction else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "LinkSetRecord":
        message = MessageRef.from_dict(data["message"])
        assert message is not None
        return LinkSetRecord(
            owner_id=str(data["owner_id"]),
            message=message,
            urls=list(data.get("urls", [])),
            links=[ClassifiedLink.from_dict(item) for item in data.get("links", [])],
            introduction=MessageRef.from_dict(data.get("introduction")),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )


@dataclass
class GuideMessageState:
    """In-memory view of one channel's guide message.

    Rebuilt at startup by searching channel history (or posting a fresh guide),
    mutated only by the guide reconciler and discarded on shutdown.
    """

    channel_id: int
    status: GuideStatus = GuideStatus.UNINITIALIZED
    message: Optional[MessageRef] = None
    last_refresh_at: Optional[float] = None


@dataclass(frozen=True)
class EventKey:
    """Structured routing key carried through an inbound event."""

    kind: Optional[RecordKind]
    action: Action
    owner_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value if self.kind else None,
            "action": self.action.value,
            "owner_id": self.owner_id,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "EventKey":
        kind = data.get("kind")
        return EventKey(
            kind=RecordKind(kind) if kind else None,
            action=Action(data["action"]),
            owner_id=data.get("owner_id"),
        )


@dataclass
class InboundEvent:
    """A normalized command, form submission or widget click."""

    kind: EventKind
    name: str
    actor: Actor
    channel_id: Optional[int]
    guild_id: Optional[int]
    responder: "Responder"
    key: Optional[EventKey] = None
    fields: Dict[str, str] = field(default_factory=dict)


__all__ = [
    "Action",
    "Actor",
    "ClassifiedLink",
    "EventKey",
    "EventKind",
    "GuideMessageState",
    "GuideStatus",
    "InboundEvent",
    "IntroductionRecord",
    "LinkSetRecord",
    "MessageRef",
    "Platform",
    "RecordKind",
]
