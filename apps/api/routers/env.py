"""Configuration presence report; never returns secret values."""

from fastapi import APIRouter

from config import settings

router = APIRouter()

REQUIRED_KEYS = (
    "STRIPE_SECRET_KEY",
    "STRIPE_PUBLISHABLE_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "APP_URL",
    "CLERK_PUBLISHABLE_KEY",
    "CLERK_SECRET_KEY",
    "ANTHROPIC_API_KEY",
    "DATABASE_URL",
)
OPTIONAL_KEYS = (
    "VERCEL_TOKEN",
    "VERCEL_TEAM_ID",
    "PEXELS_API_KEY",
    "REDIS_URL",
)


def _is_set(key: str) -> bool:
    # Built-in defaults do not count; only values supplied by the environment or .env.
    if key not in settings.model_fields_set:
        return False
    return bool(str(getattr(settings, key, "") or "").strip())


@router.get("/test-env")
async def test_env():
    flags = {key: _is_set(key) for key in (*OPTIONAL_KEYS, *REQUIRED_KEYS)}
    flags["hasAllRequired"] = all(flags[key] for key in REQUIRED_KEYS)
    return flags
