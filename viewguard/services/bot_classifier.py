"""
Bot Classifier

Stateless rule engine deciding whether a client signature (raw User-Agent)
belongs to automated traffic.
"""

from dataclasses import dataclass

from viewguard.config import ViewTrackingConfig


@dataclass(frozen=True)
class BotClassification:
    is_bot: bool
    label: str | None = None


NOT_A_BOT = BotClassification(is_bot=False)


class BotClassifier:
    """
    Match a User-Agent against the configured ordered pattern table.

    A missing or blank User-Agent is inconclusive and is not classified as a
    bot, so privacy-hardened clients are still counted. Such views are
    surfaced later by the suspicious activity scan.
    """

    def __init__(self, config: ViewTrackingConfig):
        self.config = config

    def match(self, user_agent: str | None) -> str | None:
        """Return the label of the first matching pattern, ignoring the feature toggle."""
        if not user_agent or not user_agent.strip():
            return None
        for label, pattern in self.config.bot_patterns:
            if pattern.search(user_agent):
                return label
        return None

    def classify(self, user_agent: str | None) -> BotClassification:
        if not self.config.bot_detection_enabled:
            return NOT_A_BOT
        label = self.match(user_agent)
        if label is None:
            return NOT_A_BOT
        return BotClassification(is_bot=True, label=label)
