# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Test User-Agent bot and AI-crawler classification.
"""

import pytest

from monad_x402.bots import (
    BOT_LABELS,
    classify,
    classify_ai_crawler,
    get_ai_crawler_name,
    get_bot_type,
    is_ai_crawler,
    is_bot,
    matches_allow_list,
)

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
BROWSER_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.9",
    "accept-encoding": "gzip, deflate, br",
}


class TestIsBot:
    @pytest.mark.parametrize(
        "ua",
        ["SomeBot/1.0", "my-CRAWLER", "Spider v2", "BOT", "friendly crawling agent", "xXspiderXx"],
    )
    def test_generic_tokens_are_bots(self, ua):
        assert is_bot(ua) is True

    def test_empty_user_agent_is_bot(self):
        assert is_bot("") is True
        assert is_bot(None) is True
        assert classify("").is_bot is True

    @pytest.mark.parametrize("ua", [CHROME_UA, FIREFOX_UA])
    def test_browsers_are_not_bots(self, ua):
        assert is_bot(ua) is False
        assert classify(ua).is_bot is False
        assert classify(ua).label == ""

    @pytest.mark.parametrize(
        "ua",
        [
            "curl/7.68.0",
            "Wget/1.21",
            "python-requests/2.31.0",
            "Go-http-client/1.1",
            "okhttp/4.9.0",
            "axios/1.6.0",
            "node-fetch/1.0",
            "Java/17.0.1",
            "Mozilla/5.0 (X11; Linux x86_64) HeadlessChrome/120.0",
            "facebookexternalhit/1.1",
            "WhatsApp/2.23",
            "Screaming Frog SEO Spider/19.0",
            "Mozilla/5.0 (compatible; Moz/1.0)",
        ],
    )
    def test_known_signatures_are_bots(self, ua):
        assert is_bot(ua) is True

    def test_headers_only_consulted_when_supplied(self):
        assert is_bot(CHROME_UA) is False
        assert is_bot(CHROME_UA, BROWSER_HEADERS) is False

    def test_missing_accept_language_flags_bot(self):
        headers = dict(BROWSER_HEADERS)
        del headers["accept-language"]
        assert is_bot(CHROME_UA, headers) is True

    def test_missing_accept_encoding_flags_bot(self):
        headers = dict(BROWSER_HEADERS)
        del headers["accept-encoding"]
        assert is_bot(CHROME_UA, headers) is True

    def test_non_html_accept_flags_bot(self):
        headers = dict(BROWSER_HEADERS, accept="application/json")
        assert is_bot(CHROME_UA, headers) is True

    def test_image_accept_is_browser_like(self):
        headers = dict(BROWSER_HEADERS, accept="image/webp,*/*")
        assert is_bot(CHROME_UA, headers) is False


class TestBotLabels:
    @pytest.mark.parametrize(
        "ua,label",
        [
            ("curl/7.68.0", "cURL"),
            ("Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)", "Google Bot"),
            ("Mozilla/5.0 (compatible; bingbot/2.0)", "Bing Bot"),
            ("Mozilla/5.0 (compatible; YandexBot/3.0)", "Yandex Bot"),
            ("Baiduspider/2.0", "Baidu Bot"),
            ("Mozilla/5.0 (compatible; GPTBot/1.0)", "OpenAI GPTBot"),
            ("ClaudeBot/1.0", "Anthropic Claude"),
            ("Google-Extended", "Google Gemini"),
            ("PerplexityBot/1.0", "Perplexity Bot"),
            ("Twitterbot/1.0", "Twitter Bot"),
            ("LinkedInBot/1.0", "LinkedIn Bot"),
            ("Scrapy/2.11", "Scrapy"),
            ("Wget/1.21", "Wget"),
            ("python-requests/2.31.0", "Python Requests"),
            ("HeadlessChrome/120.0", "Headless Chrome"),
            ("Playwright/1.40", "Playwright"),
            ("SemrushBot/7", "Semrush Bot"),
            ("AhrefsBot/7.0", "Ahrefs Bot"),
            ("SomeRandomBot/1.0", "Bot"),
        ],
    )
    def test_label_table(self, ua, label):
        assert get_bot_type(ua) == label
        assert classify(ua).label == label

    def test_empty_user_agent_label(self):
        assert get_bot_type("") == "Unknown Bot"

    def test_first_match_wins(self):
        # both googlebot and curl appear; googlebot is earlier in the table
        assert get_bot_type("curl googlebot") == "Google Bot"
        assert BOT_LABELS[0][1] == "Google Bot"


class TestAICrawler:
    @pytest.mark.parametrize(
        "ua,label",
        [
            ("Mozilla/5.0 (compatible; GPTBot/1.1)", "OpenAI GPTBot"),
            ("ChatGPT-User/1.0", "ChatGPT"),
            ("ClaudeBot/1.0", "Anthropic Claude"),
            ("Claude-Web/1.0", "Anthropic Claude"),
            ("Google-Extended", "Google Gemini"),
            ("PerplexityBot/1.0", "Perplexity"),
            ("CCBot/2.0", "Common Crawl"),
            ("Bytespider", "ByteDance"),
            ("cohere-ai", "AI Crawler"),
            ("YouBot/1.0", "AI Crawler"),
        ],
    )
    def test_crawlers_and_labels(self, ua, label):
        assert is_ai_crawler(ua) is True
        assert get_ai_crawler_name(ua) == label
        assert classify_ai_crawler(ua).label == label

    def test_empty_user_agent_is_not_crawler(self):
        assert is_ai_crawler("") is False
        assert get_ai_crawler_name("") is None
        assert classify_ai_crawler(None).is_bot is False

    @pytest.mark.parametrize("ua", ["curl/7.68.0", "Googlebot/2.1", CHROME_UA])
    def test_non_ai_agents(self, ua):
        assert is_ai_crawler(ua) is False


class TestAllowList:
    def test_case_insensitive_substring(self):
        assert matches_allow_list("Mozilla/5.0 (compatible; Googlebot/2.1)", ["googlebot"]) is True
        assert matches_allow_list("curl/7.68.0", ["Googlebot", "Bingbot"]) is False

    def test_empty_entries_ignored(self):
        assert matches_allow_list("curl/7.68.0", [""]) is False
        assert matches_allow_list("", ["Googlebot"]) is False
