"""Reference extraction tests.

Each page below is a small, hand-written stand-in for a real plan page, shaped
so exactly one strategy of the chain should fire.
"""

from reading_plan.extractors.books import (
    normalize_readings,
    normalize_reference,
    scan_references,
    unique_references,
)
from reading_plan.extractors.references import (
    extract_references,
    extract_references_with_strategy,
    scripture_window,
)


def test_normalize_reference_examples():
    assert normalize_reference("1 samuel   7") == "1 Samuel 7"
    assert normalize_reference("Psalm 46-48") == "Psalms 46–48"
    assert normalize_reference("song 2") == "Song of Songs 2"
    assert normalize_reference("SONG OF SOLOMON 3") == "Song of Songs 3"
    assert normalize_reference("genesis 1:1-5") == "Genesis 1"
    assert normalize_reference("Read more") is None


def test_unique_references_is_case_and_space_insensitive():
    refs = unique_references(["Genesis 1", "genesis  1", "Exodus 2", None, ""])
    assert refs == ["Genesis 1", "Exodus 2"]


def test_scan_prefers_longest_book_names():
    text = "Today: Song of Songs 1-2, then 1 John 3 and John 4."
    assert scan_references(text) == ["Song of Songs 1–2", "1 John 3", "John 4"]


def test_normalize_readings_separators():
    assert (
        normalize_readings("Genesis 1 • Genesis 2 · Matthew 1 , Mark 2 — 3")
        == "Genesis 1; Genesis 2; Matthew 1; Mark 2–3"
    )
    assert normalize_readings("nothing to see, 42") is None


ANCHOR_PAGE = """
<html><body>
  <main>
    <section>
      <div class="header"><h2>Today's Scripture</h2></div>
      <ul>
        <li><a href="/bible/111/1SA.7.NIV">1 samuel 7</a></li>
        <li><a href="/bible/111/PSA.46.NIV">Psalm 46-48</a></li>
        <li><a href="/bible/111/1SA.7.NIV">1 Samuel 7</a></li>
        <li><a href="/about">About</a></li>
      </ul>
    </section>
    <p>Elsewhere on the page we mention Exodus 3 and Leviticus 4.</p>
  </main>
</body></html>
"""


def test_anchor_strategy_wins_over_regex_fallbacks():
    name, refs = extract_references_with_strategy(ANCHOR_PAGE)
    assert name == "scripture_anchors"
    assert refs == ["1 Samuel 7", "Psalms 46–48"]


def test_absolute_scripture_links_count_too():
    html = """
    <div><h3>Scripture</h3>
      <a href="https://www.bible.com/bible/1/GEN.1">Genesis 1</a>
    </div>
    """
    assert extract_references(html) == ["Genesis 1"]


def test_selector_strategy_reads_code_block():
    html = """
    <html><body>
      <h1>Day 12</h1>
      <pre><code>Genesis 12, Genesis 13 · Matthew 5</code></pre>
    </body></html>
    """
    name, refs = extract_references_with_strategy(html)
    assert name == "reading_selectors"
    assert refs == ["Genesis 12", "Genesis 13", "Matthew 5"]


def test_selector_without_books_falls_through():
    html = """
    <html><body>
      <code>npm install</code>
      <p>Scripture Exodus 20 Start this plan Leviticus 1</p>
    </body></html>
    """
    name, refs = extract_references_with_strategy(html)
    assert name == "scripture_window"
    assert refs == ["Exodus 20"]


def test_window_stops_at_nearest_boundary():
    text = "Header Scripture Joshua 1 Joshua 2 Day 3 Judges 4 about this plan"
    assert scripture_window(text) == "Scripture Joshua 1 Joshua 2 "
    assert scripture_window("no keyword here") is None


def test_page_scan_fallback():
    html = "<html><body><p>Reading for today is Ruth 1-2 and Ruth 3.</p></body></html>"
    name, refs = extract_references_with_strategy(html)
    assert name == "page_scan"
    assert refs == ["Ruth 1–2", "Ruth 3"]


def test_nothing_found_returns_none():
    html = "<html><body><h1>Welcome</h1><p>Nothing here, 2024.</p></body></html>"
    assert extract_references(html) is None
