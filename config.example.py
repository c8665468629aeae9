# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep the OpenRouter key in .env (local, gitignored).
"""

ENV_VARS = {
    # App / logging
    "MINIMIND_APP_NAME": "App display name (default: minimind).",
    "MINIMIND_LOG_LEVEL": "Console logging level (default: INFO). The file log is always DEBUG.",
    # Paths (gitignored)
    "MINIMIND_DATA_DIR": "Local data directory, holds minimind.log (default: .local/minimind).",
    "MINIMIND_STORE_DIR": "Snapshot directory, one JSON file per key (default: <data_dir>/store).",
    # LLM / OpenRouter (voice capture)
    "MINIMIND_OPENROUTER_API_KEY": "OpenRouter API key; OPENROUTER_API_KEY is accepted too. Unset => offline capture.",
    "MINIMIND_OPENROUTER_BASE_URL": "OpenRouter base URL (default: https://openrouter.ai/api/v1).",
    "MINIMIND_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "MINIMIND_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "MINIMIND_APP_TITLE": "Optional OpenRouter metadata header title.",
    "MINIMIND_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Give up on a model without content after this long (default: 20).",
    "MINIMIND_LLM_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 25).",
    "MINIMIND_LLM_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    # Reminders
    "MINIMIND_REMINDERS_ENABLED": "Run the reminder loop (true/false, default: true).",
    "MINIMIND_REMINDER_POLL_SECONDS": "Reminder poll interval, at least 1 (default: 15).",
}
