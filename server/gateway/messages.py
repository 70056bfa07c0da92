# ─────────────────────────────────────────────────────────────────────────────
# Client-facing error messages, per outcome and locale
# ─────────────────────────────────────────────────────────────────────────────
# Several internal causes share one message per outcome. Bodies never carry
# parser errors, upstream error bodies, or configuration details.
# ─────────────────────────────────────────────────────────────────────────────

from gateway.schemas import Outcome

DEFAULT_LOCALE = "ja"

_MESSAGES: dict[str, dict[Outcome, str]] = {
    "ja": {
        Outcome.rate_limited: "リクエストが多すぎます。しばらくしてから再度お試しください。",
        Outcome.method_not_allowed: "Method not allowed",
        Outcome.invalid_request: "無効なリクエストです。",
        Outcome.misconfigured_server: "サーバー設定エラー。管理者に連絡してください。",
        Outcome.upstream_rate_limited: "APIのレート制限に達しました。しばらくしてから再度お試しください。",
        Outcome.upstream_error: "Gemini APIの呼び出しに失敗しました。",
        Outcome.unexpected_failure: "サーバーエラーが発生しました。",
    },
    "en": {
        Outcome.rate_limited: "Too many requests. Please wait a moment and try again.",
        Outcome.method_not_allowed: "Method not allowed",
        Outcome.invalid_request: "Invalid request.",
        Outcome.misconfigured_server: "Server configuration error. Please contact the administrator.",
        Outcome.upstream_rate_limited: "The API rate limit was reached. Please wait a moment and try again.",
        Outcome.upstream_error: "The Gemini API call failed.",
        Outcome.unexpected_failure: "A server error occurred.",
    },
}

SUPPORTED_LOCALES: frozenset[str] = frozenset(_MESSAGES)


def get_message(outcome: Outcome, locale: str = DEFAULT_LOCALE) -> str:
    """Localized message for an error outcome. Unknown locales fall back to Japanese."""
    catalog = _MESSAGES.get(locale.lower(), _MESSAGES[DEFAULT_LOCALE])
    return catalog[outcome]
