from __future__ import annotations

from datetime import datetime, timedelta, timezone

from inkfeed.core.config import Settings
from inkfeed.data.models import FeedItem, Interaction, InteractionType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def make_item(item_id: str, *, hours_old: float = 1.0, now: datetime = NOW, **kwargs) -> FeedItem:
    return FeedItem(
        id=item_id,
        owner_id=kwargs.pop("owner_id", "owner"),
        created_at=now - timedelta(hours=hours_old),
        **kwargs,
    )


def make_interaction(
    user_id: str,
    item_id: str,
    interaction_type: InteractionType = InteractionType.LIKE,
    *,
    value: float | None = None,
    at: datetime = NOW,
) -> Interaction:
    return Interaction.create(
        user_id,
        item_id,
        interaction_type,
        value=value,
        timestamp=at,
        settings=make_settings(),
    )
