"""Discord modal/view builders.

Construction helpers that turn form specs and guide settings into discord.py
UI objects. Submissions and clicks are routed through the bot's interaction
listener, not through callbacks on these objects.
"""

from __future__ import annotations

from typing import Optional

import discord

from ...config import GuideSettings
from ...forms import WIDGET_IDS, FormSpec
from ...models import RecordKind

# Discord rejects longer modal titles and input labels.
_MAX_TITLE = 45
_MAX_LABEL = 45
_MAX_PLACEHOLDER = 100
_FORM_TIMEOUT = 15 * 60


class RecordForm(discord.ui.Modal):
    """Modal built from a ``FormSpec``."""

    def __init__(self, form: FormSpec) -> None:
        super().__init__(
            title=form.title[:_MAX_TITLE],
            custom_id=form.custom_id,
            timeout=_FORM_TIMEOUT,
        )
        self.form = form
        for spec_field in form.fields:
            self.add_item(
                discord.ui.TextInput(
                    label=spec_field.label[:_MAX_LABEL],
                    custom_id=spec_field.key,
                    default=spec_field.value or None,
                    placeholder=(
                        spec_field.placeholder[:_MAX_PLACEHOLDER] if spec_field.placeholder else None
                    ),
                    required=spec_field.required,
                    style=(
                        discord.TextStyle.paragraph
                        if spec_field.paragraph
                        else discord.TextStyle.short
                    ),
                    max_length=1000 if spec_field.paragraph else 200,
                )
            )


def build_modal(form: FormSpec) -> RecordForm:
    return RecordForm(form)


def build_guide_view(kind: RecordKind, settings: GuideSettings) -> Optional[discord.ui.View]:
    """Persistent view holding the guide's button, or None for a plain guide."""

    if not settings.has_button:
        return None
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label=settings.button_label,
            style=discord.ButtonStyle.primary,
            custom_id=WIDGET_IDS[kind],
        )
    )
    return view


__all__ = ["RecordForm", "build_guide_view", "build_modal"]
