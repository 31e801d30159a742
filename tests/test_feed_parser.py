"""Tests for feed parsing across RSS 2.0, Atom and RDF."""

from regscan.scanner.feed_parser import (
    FeedDialect,
    extract_tag,
    node_text,
    parse_feed,
    parse_item_blocks,
    resolve_atom_link,
)

RSS2 = """<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>FTC</title>
    <item>
      <title><![CDATA[FTC Finalizes Rule on Fake Reviews]]></title>
      <link>https://www.ftc.gov/news/fake-reviews</link>
      <description>&lt;p&gt;The rule bans fake reviews.&lt;/p&gt;</description>
      <pubDate>Mon, 02 Mar 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title></title>
      <link>https://www.ftc.gov/news/untitled</link>
    </item>
  </channel>
</rss>"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>IPKat</title>
  <entry>
    <title>UPC rules on software patent scope</title>
    <link rel="replies" type="application/atom+xml" href="https://ipkitten.blogspot.com/feeds/comments"/>
    <link rel="alternate" type="text/html" href="https://ipkitten.blogspot.com/2026/03/upc.html"/>
    <summary>A decision on claim construction.</summary>
    <published>2026-03-01T09:00:00Z</published>
    <author><name>Kat</name></author>
  </entry>
</feed>"""

RDF = """<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.org/">
    <title>Regulator</title>
    <link>https://example.org/</link>
    <description>News</description>
  </channel>
  <item rdf:about="https://example.org/a">
    <title>Data protection authority issues fine</title>
    <link>https://example.org/a</link>
    <description>Fine for unlawful transfers.</description>
    <dc:date>2026-03-03T08:00:00Z</dc:date>
  </item>
</rdf:RDF>"""


class TestNodeText:
    def test_plain_string_trimmed(self):
        assert node_text("  hello  ") == "hello"

    def test_text_wrappers(self):
        assert node_text({"#text": "a"}) == "a"
        assert node_text({"#cdata": "b"}) == "b"
        assert node_text({"value": "c"}) == "c"

    def test_list_takes_first_non_empty(self):
        assert node_text(["", {"#text": "x"}, "y"]) == "x"

    def test_strips_tags_and_entities(self):
        assert node_text("<b>Fish &amp; Chips</b>") == "Fish & Chips"

    def test_none(self):
        assert node_text(None) == ""


class TestResolveAtomLink:
    def test_prefers_alternate(self):
        links = [
            {"rel": "self", "href": "https://a/self"},
            {"rel": "alternate", "href": "https://a/article"},
        ]
        assert resolve_atom_link(links) == "https://a/article"

    def test_prefers_html_type(self):
        links = [{"rel": "enclosure", "href": "x"}, {"type": "text/html", "href": "https://a/html"}]
        assert resolve_atom_link(links) == "https://a/html"

    def test_falls_back_to_first(self):
        assert resolve_atom_link([{"rel": "self", "href": "https://a/1"}]) == "https://a/1"

    def test_single_dict(self):
        assert resolve_atom_link({"href": "https://a/only"}) == "https://a/only"

    def test_empty(self):
        assert resolve_atom_link(None) == ""


class TestFeedDialect:
    def test_versions(self):
        assert FeedDialect.from_version("rss20") is FeedDialect.RSS2
        assert FeedDialect.from_version("atom10") is FeedDialect.ATOM
        assert FeedDialect.from_version("rss10") is FeedDialect.RDF
        assert FeedDialect.from_version("") is None


class TestParseFeed:
    def test_rss2(self):
        items = parse_feed(RSS2, "FTC Press Releases")

        assert len(items) == 1
        item = items[0]
        assert item.title == "FTC Finalizes Rule on Fake Reviews"
        assert item.link == "https://www.ftc.gov/news/fake-reviews"
        assert item.description == "The rule bans fake reviews."
        assert "2026" in item.pub_date
        assert item.source == "FTC Press Releases"

    def test_atom_uses_alternate_link(self):
        items = parse_feed(ATOM, "IPKat")

        assert len(items) == 1
        assert items[0].link == "https://ipkitten.blogspot.com/2026/03/upc.html"
        assert items[0].description == "A decision on claim construction."
        assert items[0].author == "Kat"

    def test_rdf(self):
        items = parse_feed(RDF, "Regulator")

        assert len(items) == 1
        assert items[0].title == "Data protection authority issues fine"
        assert items[0].link == "https://example.org/a"
        assert items[0].pub_date

    def test_unparseable_returns_empty(self):
        assert parse_feed("this is not a feed", "X") == []


class TestRegexFallback:
    def test_extract_tag_cdata(self):
        assert extract_tag("<title><![CDATA[Hello <b>World</b>]]></title>", "title") == "Hello World"

    def test_extract_tag_missing(self):
        assert extract_tag("<item></item>", "title") == ""

    def test_item_blocks_from_broken_xml(self):
        broken = (
            "<rss><channel><item><title>Broken & feed item</title>"
            "<link>https://example.com/1</link><pubDate>Mon, 02 Mar 2026 10:00:00 GMT</pubDate>"
            "</item><item><title>Second</title></item>"
        )
        result = parse_item_blocks(broken, "Broken")

        assert result.ok
        assert [i.title for i in result.items] == ["Broken & feed item", "Second"]
        assert result.items[0].link == "https://example.com/1"
