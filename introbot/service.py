"""Record flows for introductions and link sets."""
from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, List, Optional, Tuple

from . import forms
from .config import ChannelRouter, Settings
from .errors import (
    AlreadyExists,
    ChannelMismatch,
    FormExpired,
    MissingPrerequisite,
    NotFound,
    ValidationFailed,
)
from .guide import GuideReconciler
from .links import classify_links
from .models import (
    Action,
    Actor,
    EventKey,
    IntroductionRecord,
    LinkSetRecord,
    RecordKind,
)
from .posts import format_introduction, format_link_set
from .publisher import MessagePublisher
from .state import BoardState, utcnow_iso
from .telemetry import get_telemetry, track_duration
from .validation import validate_cohort

logger = logging.getLogger(__name__)


class IntroService:
    """Decides between create and edit, publishes posts and saves records.

    Every submission for a given owner and record kind runs under that pair's
    lock, so the existence check, the publish and the save happen as one step
    even when the same member submits twice in quick succession.
    """

    def __init__(
        self,
        state: BoardState,
        publisher: MessagePublisher,
        channels: ChannelRouter,
        settings: Settings,
        guides: Optional[GuideReconciler] = None,
    ) -> None:
        self.state = state
        self.publisher = publisher
        self.channels = channels
        self.settings = settings
        self.guides = guides
        # Locks live only while a submission holds or awaits them.
        self._locks: weakref.WeakValueDictionary[Tuple[RecordKind, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def owner_lock(self, kind: RecordKind, owner_id: str) -> asyncio.Lock:
        key = (kind, owner_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _channel(self, kind: RecordKind) -> int:
        channel_id = self.channels.channel_for(kind)
        if channel_id is None:
            raise ChannelMismatch(kind, None)
        return channel_id

    # Forms -------------------------------------------------------------
    def open_form(self, actor: Actor, kind: RecordKind, action: Action) -> forms.FormSpec:
        """Check the member's records and build the form to show them.

        The decided create/edit key is stashed under a token that becomes the
        form id, so the submission carries it back without parsing names.
        """

        if kind is RecordKind.INTRODUCTION:
            existing = self.state.introductions.get(actor.id)
            if action is Action.CREATE and existing is not None:
                raise AlreadyExists(kind, actor.id, existing.message)
            if action is Action.EDIT and existing is None:
                raise NotFound(kind, actor.id)
            resolved = Action.EDIT if existing is not None else Action.CREATE
            token = self._stash(kind, resolved, actor.id)
            return forms.introduction_form(
                token,
                existing,
                course_examples=self.settings.course_examples,
                cohort_letters=self.settings.cohort_letters,
            )

        if not self.state.introductions.exists(actor.id):
            raise MissingPrerequisite(actor.id, self.channels.introduction)
        existing_links = self.state.link_sets.get(actor.id)
        if action is Action.EDIT and existing_links is None:
            raise NotFound(kind, actor.id)
        # A create request for an existing link set is routed to the edit form.
        resolved = Action.EDIT if existing_links is not None else Action.CREATE
        token = self._stash(kind, resolved, actor.id)
        return forms.link_set_form(token, existing_links)

    def _stash(self, kind: RecordKind, action: Action, owner_id: str) -> str:
        key = EventKey(kind=kind, action=action, owner_id=owner_id)
        return self.state.stash_form_state(key.to_dict())

    def resolve_form(self, token: Optional[str]) -> Optional[EventKey]:
        """Consume the stashed key for a submitted form."""

        if not token:
            return None
        payload = self.state.consume_form_state(token)
        if payload is None:
            return None
        try:
            return EventKey.from_dict(payload)
        except (KeyError, ValueError):
            logger.error("Form state %s does not hold an event key", token)
            return None

    # Validation --------------------------------------------------------
    def validate_introduction(self, values: Dict[str, str]) -> Dict[str, str]:
        fields = forms.read_introduction(values)
        validate_cohort(fields[forms.COHORT], self.settings.cohort_letters)
        return fields

    def validate_links(self, values: Dict[str, str]) -> List[str]:
        urls = forms.read_links(values)
        if not urls:
            raise ValidationFailed(forms.LINK_FIELDS[0], "Please enter at least one link.")
        return urls[: forms.MAX_LINKS]

    # Submissions -------------------------------------------------------
    async def submit_introduction(
        self, actor: Actor, key: EventKey, values: Dict[str, str]
    ) -> IntroductionRecord:
        fields = self.validate_introduction(values)
        self._check_key(actor, key, RecordKind.INTRODUCTION)
        channel_id = self._channel(RecordKind.INTRODUCTION)
        edit = key.action is Action.EDIT
        async with self.owner_lock(RecordKind.INTRODUCTION, actor.id):
            existing = self.state.introductions.get(actor.id)
            if not edit and existing is not None:
                raise AlreadyExists(RecordKind.INTRODUCTION, actor.id, existing.message)
            if edit and existing is None:
                raise NotFound(RecordKind.INTRODUCTION, actor.id)
            link_set = self.state.link_sets.get(actor.id)
            body = format_introduction(
                actor,
                name=fields[forms.NAME],
                contact_handle=fields[forms.CONTACT_HANDLE],
                course=fields[forms.COURSE],
                cohort=fields[forms.COHORT],
                note=fields[forms.NOTE],
                link_set=link_set.message if link_set else None,
            )
            with track_duration("publish_introduction"):
                ref = await self.publisher.replace(
                    channel_id, existing.message if existing else None, body, actor
                )
            now = utcnow_iso()
            record = IntroductionRecord(
                owner_id=actor.id,
                message=ref,
                name=fields[forms.NAME],
                contact_handle=fields[forms.CONTACT_HANDLE],
                course=fields[forms.COURSE],
                cohort=fields[forms.COHORT],
                note=fields[forms.NOTE],
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            if edit:
                self.state.introductions.save(actor.id, record)
            else:
                self.state.introductions.create(actor.id, record)
        logger.info(
            "%s introduction for %s as message %s",
            "Updated" if edit else "Published",
            actor.id,
            ref.message_id,
        )
        get_telemetry().track_record_published(RecordKind.INTRODUCTION.value, actor.id, edit=edit)
        self._refresh_guide(channel_id)
        return record

    async def submit_link_set(
        self, actor: Actor, key: EventKey, values: Dict[str, str]
    ) -> LinkSetRecord:
        urls = self.validate_links(values)
        self._check_key(actor, key, RecordKind.LINK_SET)
        channel_id = self._channel(RecordKind.LINK_SET)
        edit = key.action is Action.EDIT
        async with self.owner_lock(RecordKind.LINK_SET, actor.id):
            introduction = self.state.introductions.get(actor.id)
            if introduction is None:
                raise MissingPrerequisite(actor.id, self.channels.introduction)
            existing = self.state.link_sets.get(actor.id)
            if not edit and existing is not None:
                raise AlreadyExists(RecordKind.LINK_SET, actor.id, existing.message)
            if edit and existing is None:
                raise NotFound(RecordKind.LINK_SET, actor.id)
            links = classify_links(urls)
            body = format_link_set(actor, links, introduction.message)
            with track_duration("publish_link_set"):
                ref = await self.publisher.replace(
                    channel_id, existing.message if existing else None, body, actor
                )
            now = utcnow_iso()
            record = LinkSetRecord(
                owner_id=actor.id,
                message=ref,
                urls=urls,
                links=links,
                introduction=introduction.message,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            if edit:
                self.state.link_sets.save(actor.id, record)
            else:
                self.state.link_sets.create(actor.id, record)
        logger.info(
            "%s link set for %s as message %s",
            "Updated" if edit else "Published",
            actor.id,
            ref.message_id,
        )
        get_telemetry().track_record_published(RecordKind.LINK_SET.value, actor.id, edit=edit)
        self._refresh_guide(channel_id)
        return record

    def _check_key(self, actor: Actor, key: Optional[EventKey], kind: RecordKind) -> None:
        if key is None or key.kind is not kind or key.action not in (Action.CREATE, Action.EDIT):
            raise FormExpired()
        if key.owner_id is not None and key.owner_id != actor.id:
            logger.warning("Form for %s submitted by %s", key.owner_id, actor.id)
            raise FormExpired()

    def _refresh_guide(self, channel_id: int) -> None:
        if self.guides is not None:
            self.guides.request_refresh(channel_id)

    # Diagnostics -------------------------------------------------------
    def diagnostics(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = dict(self.state.summary())
        summary["introduction_channel"] = self.channels.introduction
        summary["link_set_channel"] = self.channels.link_set
        return summary


__all__ = ["IntroService"]
