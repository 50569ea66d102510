"""Remote content shown on the dashboard and in the package dialog."""

import html
import re
import xml.etree.ElementTree as ET
from typing import List

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

from logger import get_logger
from models import AurComment, NewsItem

log = get_logger("news")

ARCH_NEWS_URL = "https://archlinux.org/feeds/news/"
AUR_PACKAGE_URL = "https://aur.archlinux.org/packages/{}/"
REQUEST_TIMEOUT = 10

_USER_LINK_RE = re.compile(r"/(?:users|account)/([^/]+)/")


class NewsError(RuntimeError):
    pass


def _get(url: str) -> str:
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        log.error("Request to %s failed: %s", url, e)
        raise NewsError(f"Failed to fetch {url}: {e}") from e
    return response.text


def parse_news_feed(xml: str, limit: int) -> List[NewsItem]:
    """Read ``<item>`` entries from an RSS document."""
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise NewsError(f"Invalid news feed: {e}") from e

    limit = max(limit, 1)
    items: List[NewsItem] = []
    for node in root.iter("item"):
        title = html.unescape((node.findtext("title") or "").strip())
        link = (node.findtext("link") or "").strip()
        published = html.unescape((node.findtext("pubDate") or "").strip())
        if not title or not link:
            continue
        items.append(NewsItem(title=title, link=link, published=published))
        if len(items) >= limit:
            break
    return items


def fetch_arch_news(limit: int) -> List[NewsItem]:
    items = parse_news_feed(_get(ARCH_NEWS_URL), limit)
    if not items:
        raise NewsError("No news items were found in the feed")
    log.debug("Fetched %d Arch news items", len(items))
    return items


def _node_text(node) -> str:
    """Flatten comment markup into plain text with markdown-ish code marks."""
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag):
        return ""
    if node.name == "br":
        return "\n"
    if node.name == "pre":
        return f"```\n{node.get_text()}\n```"
    inner = "".join(_node_text(child) for child in node.children)
    if node.name == "code":
        return f"`{inner}`"
    if node.name == "p":
        return f"{inner}\n"
    return inner


def _comment_author(header: Tag) -> str:
    for link in header.find_all("a", href=True):
        m = _USER_LINK_RE.search(link["href"])
        if m:
            return m.group(1)
    return "unknown"


def _comment_date(header: Tag) -> str:
    link = header.find("a", class_="date") or header.find("a", title="Permalink to this comment")
    return link.get_text(strip=True) if link else ""


def parse_aur_comments(page: str) -> List[AurComment]:
    soup = BeautifulSoup(page, "html.parser")
    comments: List[AurComment] = []
    for header in soup.find_all("h4", class_="comment-header"):
        body = header.find_next_sibling("div", class_="article-content")
        if body is None:
            continue
        content = _node_text(body).strip()
        if content:
            comments.append(
                AurComment(author=_comment_author(header), date=_comment_date(header), content=content)
            )
    return comments


def fetch_aur_comments(name: str) -> List[AurComment]:
    log.debug("Fetching AUR comments for %s", name)
    comments = parse_aur_comments(_get(AUR_PACKAGE_URL.format(name)))
    log.info("Fetched %d comments for %s", len(comments), name)
    return comments
