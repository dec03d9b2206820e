from datetime import datetime, timezone
from typing import Optional

from tradejournal.config import TRIAL_DAYS
from tradejournal.schemas.user import SubscriptionStatus


def get_subscription_status(user: dict, now: Optional[datetime] = None) -> SubscriptionStatus:
    if user.get("is_premium"):
        return SubscriptionStatus(is_premium=True, is_trial_active=False, trial_days_remaining=0)

    now = now or datetime.now(timezone.utc)
    created_at = user["created_at"]
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    days_since_creation = (now - created_at).days
    remaining = max(0, TRIAL_DAYS - days_since_creation)
    return SubscriptionStatus(
        is_premium=False,
        is_trial_active=remaining > 0,
        trial_days_remaining=remaining,
    )
