# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep the backend key and Google client id in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "MAKECOMMAND_APP_NAME": "App display name (default: MakeCommand).",
    "MAKECOMMAND_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Backend (Supabase-compatible auth + REST tables)
    "MAKECOMMAND_BACKEND_URL": "Backend project URL, e.g. https://<project>.supabase.co (required).",
    "MAKECOMMAND_BACKEND_ANON_KEY": "Public anon key sent as the `apikey` header (required).",
    # Google Tasks
    "MAKECOMMAND_GOOGLE_CLIENT_ID": "OAuth client id. Empty => Google Tasks integration disabled.",
    "MAKECOMMAND_GOOGLE_REDIRECT_URI": (
        "Redirect URI registered for the client (default: http://localhost:8080/tasks)."
    ),
    "MAKECOMMAND_GOOGLE_SCOPE": "OAuth scope (default: https://www.googleapis.com/auth/tasks).",
    "MAKECOMMAND_GOOGLE_TASKS_BASE_URL": (
        "Google Tasks REST base (default: https://tasks.googleapis.com/tasks/v1)."
    ),
    "MAKECOMMAND_GOOGLE_SESSION_PERSIST": (
        "Keep the Google access token between runs (true/false, default: false)."
    ),
    "MAKECOMMAND_GOOGLE_SESSION_PATH": (
        "Token file when persisted (default: <data_dir>/google_session.json, mode 0600)."
    ),
    # Paths (gitignored)
    "MAKECOMMAND_DATA_DIR": "Local data directory for logs and sessions (default: .local/makecommand).",
    # Tuning
    "MAKECOMMAND_HTTP_TIMEOUT_SECONDS": "Timeout for backend and Google requests (default: 15, min 1).",
}
