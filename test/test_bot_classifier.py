"""
Tests for the bot classifier and its pattern table
"""

import pytest

from viewguard.config import build_view_tracking_config
from viewguard.constants.bot_patterns import BOT_USER_AGENT_PATTERNS
from viewguard.services.bot_classifier import NOT_A_BOT, BotClassifier

BROWSER_UAS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
]


@pytest.fixture
def classifier():
    return BotClassifier(build_view_tracking_config())


class TestBotClassifier:
    @pytest.mark.parametrize(
        "user_agent",
        [
            "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
            "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)",
            "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)",
            "curl/8.4.0",
            "Wget/1.21.4",
            "python-requests/2.31.0",
            "Java/17.0.2",
            "Go-http-client/1.1",
            "axios/1.6.2",
            "PostmanRuntime/7.36.0",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) HeadlessChrome/120.0.0.0",
            "Mozilla/5.0 Selenium WebDriver",
            "Pingdom.com_bot_version_1.4",
            "Mozilla/5.0 Chrome-Lighthouse",
        ],
    )
    def test_known_automation_is_bot(self, classifier, user_agent):
        assert classifier.classify(user_agent).is_bot is True

    @pytest.mark.parametrize("user_agent", BROWSER_UAS)
    def test_browsers_are_not_bots(self, classifier, user_agent):
        assert classifier.classify(user_agent) == NOT_A_BOT

    @pytest.mark.parametrize("user_agent", [None, "", "   "])
    def test_missing_signature_is_not_a_bot(self, classifier, user_agent):
        result = classifier.classify(user_agent)
        assert result.is_bot is False
        assert result.label is None

    @pytest.mark.parametrize(
        ("user_agent", "label"),
        [
            ("Mozilla/5.0 (compatible; AhrefsBot/7.0; +http://ahrefs.com/robot/)", "named_bot"),
            (
                "Mozilla/5.0 AppleWebKit/537.36 (KHTML, like Gecko; compatible; GPTBot/1.0; +https://openai.com/gptbot)",
                "named_bot",
            ),
            ("Mozilla/5.0 (compatible; MJ12bot/v1.4.8; http://mj12bot.com/)", "named_bot"),
            ("Mozilla/5.0 (compatible; SemrushBot/7~bl; +http://www.semrush.com/bot.html)", "bot"),
            ("CCBot/2.0 (https://commoncrawl.org/faq/)", "crawler"),
            ("Sogou web crawling agent", "crawler"),
        ],
    )
    def test_crawlers_named_after_bot_or_crawl(self, classifier, user_agent, label):
        result = classifier.classify(user_agent)
        assert result.is_bot is True
        assert result.label == label

    def test_specific_crawler_labels_win_over_generic_suffix(self, classifier):
        assert classifier.classify("Mozilla/5.0 (compatible; bingbot/2.0)").label == "bingbot"
        assert classifier.classify("Twitterbot/1.0").label == "twitterbot"

    def test_reports_first_matching_label(self, classifier):
        assert classifier.classify("curl/7.68.0").label == "curl"
        assert classifier.classify("python-requests/2.31.0").label == "python_requests"

    def test_matching_is_case_insensitive(self, classifier):
        assert classifier.classify("CURL/7.68.0").is_bot is True
        assert classifier.classify("GoogleBot/2.1 (+http://www.google.com/BOT.html)").is_bot is True

    def test_disabled_detection_admits_everything(self):
        classifier = BotClassifier(build_view_tracking_config(bot_detection_enabled=False))
        assert classifier.classify("curl/8.4.0") == NOT_A_BOT
        # The raw match is still available to the suspicious activity scan
        assert classifier.match("curl/8.4.0") == "curl"

    def test_extra_patterns_are_appended(self):
        from viewguard.constants.bot_patterns import compile_extra_patterns

        config = build_view_tracking_config(
            bot_patterns=BOT_USER_AGENT_PATTERNS + compile_extra_patterns([r"newsfetcher"])
        )
        classifier = BotClassifier(config)
        result = classifier.classify("NewsFetcher/3.0")
        assert result.is_bot is True
        assert result.label == "custom:newsfetcher"


class TestBotPatternTable:
    def test_table_is_immutable_and_ordered(self):
        assert isinstance(BOT_USER_AGENT_PATTERNS, tuple)
        labels = [label for label, _ in BOT_USER_AGENT_PATTERNS]
        assert labels[0] == "bot"
        assert len(labels) == len(set(labels))
