import re
from typing import Iterable, Optional

# Lower-case substrings of User-Agent values sent by automated clients
BOT_SIGNATURES = (
    # Search engine crawlers
    "googlebot",
    "google-inspectiontool",
    "bingbot",
    "slurp",  # Yahoo
    "duckduckbot",
    "baiduspider",
    "yandexbot",
    "sogou",
    "exabot",
    "facebot",
    "ia_archiver",  # Alexa
    # AI crawlers
    "gptbot",
    "chatgpt-user",
    "oai-searchbot",
    "claude-web",
    "claudebot",
    "anthropic-ai",
    "cohere-ai",
    "perplexitybot",
    "youbot",
    "ccbot",  # Common Crawl
    # Link preview fetchers
    "facebookexternalhit",
    "facebookcatalog",
    "twitterbot",
    "linkedinbot",
    "slackbot",
    "slack-imgproxy",
    "discordbot",
    "telegrambot",
    "whatsapp",
    "pinterestbot",
    "redditbot",
    # SEO tools
    "semrushbot",
    "ahrefsbot",
    "mj12bot",  # Majestic
    "dotbot",
    "rogerbot",  # Moz
    "screaming frog",
    # Other indexers
    "applebot",
    "amazonbot",
    "bytespider",  # ByteDance
)


class BotClassifier:
    """
    Detects automated clients from the declared User-Agent.

    The signature list is compiled once into a single case-insensitive
    alternation; instances hold no other state and are shared between requests.
    """

    __slots__ = ("_signatures", "_pattern")

    def __init__(self, signatures: Iterable[str] = BOT_SIGNATURES):
        cleaned = tuple(s.strip().lower() for s in signatures if s and s.strip())
        if not cleaned:
            raise ValueError("BotClassifier needs at least one signature")
        object.__setattr__(self, "_signatures", cleaned)
        object.__setattr__(
            self,
            "_pattern",
            re.compile("|".join(re.escape(s) for s in cleaned), re.IGNORECASE),
        )

    def __setattr__(self, name, value):
        raise AttributeError("BotClassifier is immutable")

    @property
    def signatures(self) -> tuple[str, ...]:
        return self._signatures

    def classify(self, user_agent: Optional[str]) -> bool:
        if not user_agent:
            return False
        return self._pattern.search(user_agent) is not None


default_classifier = BotClassifier()
