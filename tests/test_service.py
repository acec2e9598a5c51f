"""Tests for the introduction and link set flows."""
from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest

from introbot.errors import (
    AlreadyExists,
    ChannelMismatch,
    ExternalOperationFailed,
    FormExpired,
    MissingPrerequisite,
    NotFound,
    ValidationFailed,
)
from introbot.config import ChannelRouter
from introbot.forms import FORM_ID_PREFIX, token_from_custom_id
from introbot.models import Action, EventKey, RecordKind
from introbot.service import IntroService

from conftest import INTRO_CHANNEL, LINKS_CHANNEL, intro_values, make_actor


def _key(service, actor, kind, action):
    form = service.open_form(actor, kind, action)
    return service.resolve_form(token_from_custom_id(form.custom_id))


async def _introduce(service, actor, **overrides):
    key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)
    return await service.submit_introduction(actor, key, intro_values(**overrides))


async def _share(service, actor, *urls):
    key = _key(service, actor, RecordKind.LINK_SET, Action.CREATE)
    values = {f"url_{index}": url for index, url in enumerate(urls, start=1)}
    return await service.submit_link_set(actor, key, values)


def test_open_form_stashes_create_key(service, state):
    form = service.open_form(make_actor(), RecordKind.INTRODUCTION, Action.CREATE)
    assert form.custom_id.startswith(FORM_ID_PREFIX)
    assert [field.key for field in form.fields] == [
        "name",
        "contact_handle",
        "course",
        "cohort",
        "note",
    ]
    payload = state.peek_form_state(token_from_custom_id(form.custom_id))
    assert payload == {"kind": "introduction", "action": "create", "owner_id": "42"}


def test_form_token_is_single_use(service):
    form = service.open_form(make_actor(), RecordKind.INTRODUCTION, Action.CREATE)
    token = token_from_custom_id(form.custom_id)
    assert service.resolve_form(token) == EventKey(RecordKind.INTRODUCTION, Action.CREATE, "42")
    assert service.resolve_form(token) is None
    assert service.resolve_form(None) is None


def test_edit_without_introduction_is_not_found(service):
    with pytest.raises(NotFound) as excinfo:
        service.open_form(make_actor(), RecordKind.INTRODUCTION, Action.EDIT)
    assert "/self" in excinfo.value.user_message


@pytest.mark.asyncio
async def test_create_introduction_publishes_and_saves(service, state, fake_channels):
    actor = make_actor()
    record = await _introduce(service, actor)

    channel = fake_channels[INTRO_CHANNEL]
    assert len(channel.messages) == 1
    assert channel.messages[0].username == "Alice"
    assert "- Cohort: N1" in channel.contents[0]
    assert record.message.message_id == channel.messages[0].id
    assert state.introductions.load("42").name == "Alice"


@pytest.mark.asyncio
async def test_second_create_points_to_existing_post(service):
    actor = make_actor()
    record = await _introduce(service, actor)
    with pytest.raises(AlreadyExists) as excinfo:
        service.open_form(actor, RecordKind.INTRODUCTION, Action.CREATE)
    assert "/self-edit" in excinfo.value.user_message
    assert record.message.jump_url in excinfo.value.user_message


@pytest.mark.asyncio
async def test_edit_replaces_post_and_keeps_created_at(service, state, fake_channels):
    actor = make_actor()
    first = await _introduce(service, actor)

    form = service.open_form(actor, RecordKind.INTRODUCTION, Action.EDIT)
    assert form.fields[0].value == "Alice"
    key = service.resolve_form(token_from_custom_id(form.custom_id))
    assert key.action is Action.EDIT
    updated = await service.submit_introduction(actor, key, intro_values(note="Updated note"))

    channel = fake_channels[INTRO_CHANNEL]
    assert channel.deleted == [first.message.message_id]
    assert len(channel.messages) == 1
    assert "Updated note" in channel.contents[0]
    assert updated.created_at == first.created_at
    assert state.introductions.load("42").message == updated.message


@pytest.mark.asyncio
async def test_guide_button_opens_edit_form_for_existing_record(service):
    actor = make_actor()
    await _introduce(service, actor)
    key = _key(service, actor, RecordKind.INTRODUCTION, Action.OPEN)
    assert key.action is Action.EDIT


@pytest.mark.asyncio
async def test_invalid_cohort_publishes_nothing(service, state, fake_channels):
    actor = make_actor()
    key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)
    with pytest.raises(ValidationFailed):
        await service.submit_introduction(actor, key, intro_values(cohort="N0"))
    assert fake_channels[INTRO_CHANNEL].messages == []
    assert not state.introductions.exists("42")


@pytest.mark.asyncio
async def test_duplicate_submissions_create_one_post(service, state, fake_channels):
    actor = make_actor()
    first_key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)
    second_key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)

    results = await asyncio.gather(
        service.submit_introduction(actor, first_key, intro_values()),
        service.submit_introduction(actor, second_key, intro_values()),
        return_exceptions=True,
    )

    assert sum(isinstance(result, AlreadyExists) for result in results) == 1
    assert len(fake_channels[INTRO_CHANNEL].messages) == 1
    assert state.introductions.count() == 1


@pytest.mark.asyncio
async def test_key_from_another_member_is_rejected(service):
    key = EventKey(RecordKind.INTRODUCTION, Action.CREATE, owner_id="7")
    with pytest.raises(FormExpired):
        await service.submit_introduction(make_actor(), key, intro_values())


@pytest.mark.asyncio
async def test_publish_failure_saves_nothing(service, state, fake_channels):
    fake_channels[INTRO_CHANNEL].fail_create_webhook = True
    actor = make_actor()
    key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)
    with pytest.raises(ExternalOperationFailed):
        await service.submit_introduction(actor, key, intro_values())
    assert not state.introductions.exists("42")


def test_link_set_requires_introduction(service):
    with pytest.raises(MissingPrerequisite) as excinfo:
        service.open_form(make_actor(), RecordKind.LINK_SET, Action.CREATE)
    assert f"<#{INTRO_CHANNEL}>" in excinfo.value.user_message


@pytest.mark.asyncio
@pytest.mark.parametrize("action", [Action.CREATE, Action.EDIT])
async def test_link_set_submission_without_introduction_persists_nothing(
    service, state, fake_channels, action
):
    actor = make_actor()
    key = EventKey(RecordKind.LINK_SET, action, owner_id=actor.id)

    with pytest.raises(MissingPrerequisite):
        await service.submit_link_set(actor, key, {"url_1": "https://github.com/alice"})

    assert not state.link_sets.exists(actor.id)
    assert fake_channels[LINKS_CHANNEL].messages == []
    assert fake_channels[LINKS_CHANNEL].webhooks == []


def test_owner_locks_are_released_when_unused(service):
    held = service.owner_lock(RecordKind.INTRODUCTION, "1")
    for owner in range(1000):
        service.owner_lock(RecordKind.LINK_SET, str(owner))

    assert service.owner_lock(RecordKind.INTRODUCTION, "1") is held
    assert len(service._locks) == 1


@pytest.mark.asyncio
async def test_share_links_posts_classified_links(service, state, fake_channels):
    actor = make_actor()
    intro = await _introduce(service, actor)
    record = await _share(service, actor, "https://x.com/alice", "", "https://alice.example")

    body = fake_channels[LINKS_CHANNEL].contents[0]
    assert f"[>> View introduction]({intro.message.jump_url})" in body
    assert "X (Twitter): [@alice](<https://x.com/alice>)" in body
    assert "Other: [https://alice.example](<https://alice.example>)" in body
    assert record.urls == ["https://x.com/alice", "https://alice.example"]
    assert state.link_sets.load("42").introduction == intro.message


@pytest.mark.asyncio
async def test_link_set_needs_at_least_one_url(service):
    actor = make_actor()
    await _introduce(service, actor)
    key = _key(service, actor, RecordKind.LINK_SET, Action.CREATE)
    with pytest.raises(ValidationFailed):
        await service.submit_link_set(actor, key, {"url_1": "  "})


@pytest.mark.asyncio
async def test_link_set_create_is_routed_to_edit(service):
    actor = make_actor()
    await _introduce(service, actor)
    await _share(service, actor, "https://github.com/alice")

    form = service.open_form(actor, RecordKind.LINK_SET, Action.CREATE)
    assert form.title == "Edit your links"
    assert form.fields[0].value == "https://github.com/alice"
    key = service.resolve_form(token_from_custom_id(form.custom_id))
    assert key.action is Action.EDIT


@pytest.mark.asyncio
async def test_link_set_edit_without_record_is_not_found(service):
    actor = make_actor()
    await _introduce(service, actor)
    with pytest.raises(NotFound):
        service.open_form(actor, RecordKind.LINK_SET, Action.EDIT)


@pytest.mark.asyncio
async def test_introduction_edit_links_to_link_set(service, fake_channels):
    actor = make_actor()
    await _introduce(service, actor)
    links = await _share(service, actor, "https://github.com/alice")

    key = _key(service, actor, RecordKind.INTRODUCTION, Action.EDIT)
    await service.submit_introduction(actor, key, intro_values())
    assert f"- Links: {links.message.jump_url}" in fake_channels[INTRO_CHANNEL].contents[0]


@pytest.mark.asyncio
async def test_submissions_request_guide_refresh(state, publisher, channels, settings):
    guides = Mock()
    service = IntroService(state, publisher, channels, settings, guides)
    await _introduce(service, make_actor())
    guides.request_refresh.assert_called_once_with(INTRO_CHANNEL)


@pytest.mark.asyncio
async def test_unconfigured_channel_refuses(state, publisher, settings):
    service = IntroService(state, publisher, ChannelRouter(None, None), settings)
    actor = make_actor()
    key = _key(service, actor, RecordKind.INTRODUCTION, Action.CREATE)
    with pytest.raises(ChannelMismatch):
        await service.submit_introduction(actor, key, intro_values())


def test_diagnostics(service):
    info = service.diagnostics()
    assert info["introduction_channel"] == INTRO_CHANNEL
    assert info["link_set_channel"] == LINKS_CHANNEL
    assert info["introductions"] == 0
