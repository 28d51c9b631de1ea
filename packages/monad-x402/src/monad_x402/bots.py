# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""User-Agent classification for bot and AI-crawler gating.

Everything here is pure: no I/O, no state. Pattern tables are ordered and the
first matching entry decides the label.

The behavioral heuristics applied when request headers are supplied are
coarse. API gateways and privacy-hardened browsers that omit
``accept-language`` or ``accept-encoding`` will be flagged too.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Pattern, Sequence, Tuple


def _ci(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


BOT_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    _ci(p)
    for p in (
        # generic
        r"bot",
        r"crawler",
        r"spider",
        r"crawling",
        # search engines
        r"googlebot",
        r"bingbot",
        r"slurp",
        r"duckduckbot",
        r"baiduspider",
        r"yandexbot",
        r"sogou",
        r"exabot",
        r"facebot",
        r"ia_archiver",
        # AI crawlers
        r"GPTBot",
        r"ChatGPT",
        r"Claude",
        r"Google-Extended",
        r"anthropic",
        r"PerplexityBot",
        r"CCBot",
        r"Bytespider",
        # scripted HTTP clients
        r"scrapy",
        r"wget",
        r"curl",
        r"httpie",
        r"python-requests",
        r"go-http-client",
        r"java",
        r"okhttp",
        r"axios",
        r"node-fetch",
        # SEO tools
        r"Screaming Frog",
        r"Semrush",
        r"Ahrefs",
        r"Majestic",
        r"\bMoz(?!illa)",  # every browser UA starts with Mozilla/
        # link previews
        r"facebookexternalhit",
        r"Twitterbot",
        r"LinkedInBot",
        r"Slackbot",
        r"TelegramBot",
        r"WhatsApp",
        r"Discordbot",
        # headless browsers
        r"HeadlessChrome",
        r"PhantomJS",
        r"Selenium",
        r"Puppeteer",
        r"Playwright",
    )
)

BOT_LABELS: Tuple[Tuple[Pattern[str], str], ...] = tuple(
    (_ci(p), label)
    for p, label in (
        (r"googlebot", "Google Bot"),
        (r"bingbot", "Bing Bot"),
        (r"yandex", "Yandex Bot"),
        (r"baidu", "Baidu Bot"),
        (r"GPTBot", "OpenAI GPTBot"),
        (r"Claude", "Anthropic Claude"),
        (r"Google-Extended", "Google Gemini"),
        (r"Perplexity", "Perplexity Bot"),
        (r"facebookexternalhit", "Facebook Bot"),
        (r"Twitterbot", "Twitter Bot"),
        (r"LinkedInBot", "LinkedIn Bot"),
        (r"scrapy", "Scrapy"),
        (r"wget", "Wget"),
        (r"curl", "cURL"),
        (r"python-requests", "Python Requests"),
        (r"HeadlessChrome", "Headless Chrome"),
        (r"Puppeteer", "Puppeteer"),
        (r"Playwright", "Playwright"),
        (r"Semrush", "Semrush Bot"),
        (r"Ahrefs", "Ahrefs Bot"),
        (r"Screaming Frog", "Screaming Frog"),
    )
)
DEFAULT_BOT_LABEL = "Bot"
UNKNOWN_BOT_LABEL = "Unknown Bot"

AI_CRAWLER_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    _ci(p)
    for p in (
        r"GPTBot",
        r"ChatGPT-User",
        r"Claude-Web",
        r"ClaudeBot",
        r"Google-Extended",
        r"anthropic-ai",
        r"cohere-ai",
        r"PerplexityBot",
        r"Omgilibot",
        r"FacebookBot",
        r"Applebot-Extended",
        r"Bytespider",
        r"CCBot",
        r"anthropic",
        r"AI2Bot",
        r"YouBot",
    )
)

AI_CRAWLER_LABELS: Tuple[Tuple[Pattern[str], str], ...] = tuple(
    (_ci(p), label)
    for p, label in (
        (r"GPTBot", "OpenAI GPTBot"),
        (r"ChatGPT-User", "ChatGPT"),
        (r"Claude", "Anthropic Claude"),
        (r"Google-Extended", "Google Gemini"),
        (r"PerplexityBot", "Perplexity"),
        (r"CCBot", "Common Crawl"),
        (r"Bytespider", "ByteDance"),
    )
)
DEFAULT_AI_CRAWLER_LABEL = "AI Crawler"


@dataclass(frozen=True)
class BotClassification:
    is_bot: bool
    label: str = ""


def _first_label(user_agent: str, table: Sequence[Tuple[Pattern[str], str]], default: str) -> str:
    for pattern, label in table:
        if pattern.search(user_agent):
            return label
    return default


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # starlette Headers are case-insensitive already; plain dicts may not be
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value


def _looks_automated(headers: Mapping[str, str]) -> bool:
    accept = _header(headers, "accept") or ""
    if "text/html" not in accept and "image/" not in accept:
        return True
    return not _header(headers, "accept-language") or not _header(headers, "accept-encoding")


def is_bot(user_agent: Optional[str], headers: Optional[Mapping[str, str]] = None) -> bool:
    if not user_agent:
        return True
    if any(p.search(user_agent) for p in BOT_PATTERNS):
        return True
    if headers is not None:
        return _looks_automated(headers)
    return False


def get_bot_type(user_agent: Optional[str]) -> str:
    if not user_agent:
        return UNKNOWN_BOT_LABEL
    return _first_label(user_agent, BOT_LABELS, DEFAULT_BOT_LABEL)


def classify(user_agent: Optional[str], headers: Optional[Mapping[str, str]] = None) -> BotClassification:
    if not is_bot(user_agent, headers):
        return BotClassification(is_bot=False)
    return BotClassification(is_bot=True, label=get_bot_type(user_agent))


def is_ai_crawler(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    return any(p.search(user_agent) for p in AI_CRAWLER_PATTERNS)


def get_ai_crawler_name(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    return _first_label(user_agent, AI_CRAWLER_LABELS, DEFAULT_AI_CRAWLER_LABEL)


def classify_ai_crawler(user_agent: Optional[str]) -> BotClassification:
    if not is_ai_crawler(user_agent):
        return BotClassification(is_bot=False)
    return BotClassification(is_bot=True, label=get_ai_crawler_name(user_agent) or DEFAULT_AI_CRAWLER_LABEL)


def matches_allow_list(user_agent: Optional[str], allowed: Iterable[str]) -> bool:
    ua = (user_agent or "").lower()
    return any(entry and entry.lower() in ua for entry in allowed)
