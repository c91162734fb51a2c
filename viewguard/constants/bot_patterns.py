"""
Bot User-Agent Patterns

Ordered table of (label, pattern) pairs used to classify a client signature
as automated traffic. The first matching label is reported; any single match
is enough to classify the request as a bot.
"""

import re


# (label, regex source); every pattern is matched case-insensitively
_BOT_PATTERN_SOURCES: tuple[tuple[str, str], ...] = (
    # Search engine and social crawlers
    ("bot", r"\bbot\b"),
    ("crawler", r"crawl"),
    ("spider", r"\bspider\b"),
    ("scraper", r"\bscraper\b"),
    ("mediapartners", r"\bmediapartners\b"),
    ("googlebot", r"\bgooglebot\b"),
    ("bingbot", r"\bbingbot\b"),
    ("yahoo_slurp", r"\byahoo.*\bslurp\b"),
    ("duckduckbot", r"\bduckduckbot\b"),
    ("baiduspider", r"\bbaiduspider\b"),
    ("yandexbot", r"\byandexbot\b"),
    ("facebookexternalhit", r"\bfacebookexternalhit\b"),
    ("twitterbot", r"\btwitterbot\b"),
    ("linkedinbot", r"\blinkedinbot\b"),
    ("pinterestbot", r"\bpinterestbot\b"),
    ("redditbot", r"\bredditbot\b"),
    ("telegrambot", r"\btelegrambot\b"),
    ("slackbot", r"\bslackbot\b"),
    ("discordbot", r"\bdiscordbot\b"),
    ("skypebot", r"\bskypebot\b"),
    ("whatsapp", r"\bwhatsapp\b"),
    # Any other product token ending in "bot": AhrefsBot, GPTBot, MJ12bot
    ("named_bot", r"[a-z0-9]bot\b"),
    # HTTP client libraries and command-line tools
    ("curl", r"\bcurl/"),
    ("wget", r"\bwget\b"),
    ("python_requests", r"\bpython-requests\b"),
    ("python_urllib", r"\bpython-urllib\b"),
    ("python_httpx", r"\bpython-httpx\b"),
    ("aiohttp", r"\baiohttp\b"),
    ("scrapy", r"\bscrapy\b"),
    ("java", r"\bjava/"),
    ("php", r"\bphp/"),
    ("perl", r"\blibwww-perl\b"),
    ("ruby", r"\bruby/"),
    ("go_http_client", r"\bgo-http-client\b"),
    ("okhttp", r"\bokhttp\b"),
    ("axios", r"\baxios\b"),
    ("node_fetch", r"\bnode-fetch\b"),
    ("apache_httpclient", r"\bapache-httpclient\b"),
    ("postman", r"\bpostman\b"),
    ("insomnia", r"\binsomnia\b"),
    ("httpie", r"\bhttpie\b"),
    # Headless browsers and automation frameworks
    ("headless", r"headless"),
    ("phantomjs", r"\bphantomjs\b"),
    ("selenium", r"\bselenium\b"),
    ("webdriver", r"\bwebdriver\b"),
    ("puppeteer", r"\bpuppeteer\b"),
    ("playwright", r"\bplaywright\b"),
    # Monitoring, auditing and load-testing tools
    ("lighthouse", r"\bchrome-lighthouse\b"),
    ("gtmetrix", r"\bgtmetrix\b"),
    ("pingdom", r"\bpingdom\b"),
    ("uptimerobot", r"\buptimerobot\b"),
    ("statuscake", r"\bstatuscake\b"),
    ("load_test", r"\b(load|stress|speed|performance)[\s-]*test"),
    ("test_agent", r"\btest\s*agent\b"),
)


BOT_USER_AGENT_PATTERNS: tuple[tuple[str, re.Pattern], ...] = tuple(
    (label, re.compile(source, re.IGNORECASE)) for label, source in _BOT_PATTERN_SOURCES
)


def compile_extra_patterns(sources: list[str]) -> tuple[tuple[str, re.Pattern], ...]:
    """Compile operator-supplied patterns; each is labelled ``custom:<source>``."""
    return tuple((f"custom:{source}", re.compile(source, re.IGNORECASE)) for source in sources)
