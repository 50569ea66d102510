import pytest
import requests

import news

FEED = """<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0"><channel>
<title>Arch Linux: Recent news updates</title>
<item>
  <title>Manual intervention for foo &amp;amp; bar</title>
  <link>https://archlinux.org/news/foo/</link>
  <pubDate>Mon, 01 Jul 2024 10:00:00 +0000</pubDate>
</item>
<item>
  <title>No link here</title>
</item>
<item>
  <title>Second</title>
  <link>https://archlinux.org/news/second/</link>
</item>
<item>
  <title>Third</title>
  <link>https://archlinux.org/news/third/</link>
</item>
</channel></rss>
"""

COMMENTS_PAGE = """
<div class="comments">
<h4 class="comment-header">
  <a href="/account/alice/">alice</a> commented on
  <a href="#comment-1" class="date" title="Permalink to this comment">2024-07-01 10:00 (UTC)</a>
</h4>
<div id="comment-1-content" class="article-content comment-content">
<p>Works fine with <code>--needed</code> &amp; friends.</p>
</div>
<h4 class="comment-header">
  <a href="/users/bob/">bob</a> commented on
  <a href="#comment-2" class="date" title="Permalink to this comment">2024-06-30 08:00 (UTC)</a>
</h4>
<div class="article-content comment-content"><pre>error: build failed</pre></div>
<h4 class="comment-header">
  <a href="/users/carol/">carol</a> commented
</h4>
<div class="article-content comment-content">   </div>
</div>
"""


class FakeResponse:
    def __init__(self, text="", error=None):
        self.text = text
        self._error = error

    def raise_for_status(self):
        if self._error is not None:
            raise self._error


def test_parse_news_feed_skips_incomplete_items_and_limits():
    items = news.parse_news_feed(FEED, 2)

    assert [i.title for i in items] == ["Manual intervention for foo & bar", "Second"]
    assert items[0].link == "https://archlinux.org/news/foo/"
    assert items[0].published == "Mon, 01 Jul 2024 10:00:00 +0000"
    assert items[1].published == ""


def test_parse_news_feed_limit_is_at_least_one():
    assert len(news.parse_news_feed(FEED, 0)) == 1


def test_parse_news_feed_rejects_invalid_xml():
    with pytest.raises(news.NewsError):
        news.parse_news_feed("<rss><channel>", 5)


def test_fetch_arch_news(monkeypatch):
    urls = []

    def fake_get(url, timeout):
        urls.append((url, timeout))
        return FakeResponse(FEED)

    monkeypatch.setattr(news.requests, "get", fake_get)

    items = news.fetch_arch_news(5)

    assert len(items) == 3
    assert urls == [(news.ARCH_NEWS_URL, news.REQUEST_TIMEOUT)]


def test_fetch_arch_news_empty_feed_raises(monkeypatch):
    monkeypatch.setattr(news.requests, "get", lambda url, timeout: FakeResponse("<rss><channel/></rss>"))

    with pytest.raises(news.NewsError, match="No news"):
        news.fetch_arch_news(5)


def test_http_errors_become_news_errors(monkeypatch):
    def fake_get(url, timeout):
        return FakeResponse(error=requests.HTTPError("503 Server Error"))

    monkeypatch.setattr(news.requests, "get", fake_get)

    with pytest.raises(news.NewsError, match="503"):
        news.fetch_arch_news(5)


def test_connection_errors_become_news_errors(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(news.requests, "get", fake_get)

    with pytest.raises(news.NewsError, match="offline"):
        news.fetch_aur_comments("yay")


def test_parse_aur_comments():
    comments = news.parse_aur_comments(COMMENTS_PAGE)

    assert len(comments) == 2
    first, second = comments
    assert first.author == "alice"
    assert first.date == "2024-07-01 10:00 (UTC)"
    assert first.content == "Works fine with `--needed` & friends."
    assert second.author == "bob"
    assert second.content == "```\nerror: build failed\n```"


def test_parse_aur_comments_without_comments():
    assert news.parse_aur_comments("<html><body>nothing</body></html>") == []


def test_fetch_aur_comments_uses_package_url(monkeypatch):
    urls = []

    def fake_get(url, timeout):
        urls.append(url)
        return FakeResponse(COMMENTS_PAGE)

    monkeypatch.setattr(news.requests, "get", fake_get)

    assert len(news.fetch_aur_comments("yay")) == 2
    assert urls == ["https://aur.archlinux.org/packages/yay/"]


def test_parse_aur_comments_header_with_id_and_inner_wrapper():
    page = """
<div class="comments package-comments">
<h4 id="comment-7" class="comment-header">
  <a href="/account/dave/">dave</a> commented on
  <a href="#comment-7" class="date">2024-05-02 12:00 (UTC)</a>
</h4>
<div id="comment-7-content" class="article-content comment-content">
  <div>
    <p>Works fine.</p>
    <p>Needs <code>base-devel</code><br>first.</p>
  </div>
</div>
</div>
"""
    comments = news.parse_aur_comments(page)

    assert len(comments) == 1
    assert comments[0].author == "dave"
    assert comments[0].date == "2024-05-02 12:00 (UTC)"
    assert comments[0].content.startswith("Works fine.\n")
    assert "<div>" not in comments[0].content
    assert comments[0].content.endswith("Needs `base-devel`\nfirst.")


def test_parse_aur_comments_unknown_author():
    page = (
        '<h4 class="comment-header">someone commented</h4>'
        '<div class="article-content"><p>hello</p></div>'
    )

    comments = news.parse_aur_comments(page)

    assert [(c.author, c.date, c.content) for c in comments] == [("unknown", "", "hello")]
