from datetime import datetime, timezone

import shortuuid

_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def generate_inventory_code(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    suffix = shortuuid.ShortUUID(alphabet=_CODE_ALPHABET).random(length=7)
    return f"STOCK{moment:%y%m%d}{suffix}"


def generate_alert_id(alert_type: str, inventory_id: str) -> str:
    return f"ALERT-{alert_type}-{inventory_id}"
