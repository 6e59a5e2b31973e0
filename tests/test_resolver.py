import tempfile
import unittest
from pathlib import Path

from sitecapture.frontier import Task
from sitecapture.resolver import replace_references, resolve_references
from sitecapture.storage import Storage


def processed(url, filename=None, original_url=None):
    task = Task(url, original_url)
    task.mark_processing()
    task.mark_processed()
    task.filename = filename
    return task


class TestReplaceReferences(unittest.TestCase):
    URL = "http://x/page2"
    NAME = "page2 (1).html"

    def test_double_quoted(self):
        out = replace_references('<a href="http://x/page2">', self.URL, self.NAME)
        self.assertEqual(out, '<a href="page2 (1).html">')

    def test_single_quoted(self):
        out = replace_references("<a href='http://x/page2'>", self.URL, self.NAME)
        self.assertEqual(out, "<a href='page2 (1).html'>")

    def test_unquoted_closing_bracket(self):
        out = replace_references("<a href=http://x/page2>", self.URL, self.NAME)
        self.assertEqual(out, "<a href=page2%20(1).html>")

    def test_unquoted_followed_by_space(self):
        out = replace_references("<a href=http://x/page2 class=nav>", self.URL, self.NAME)
        self.assertEqual(out, "<a href=page2%20(1).html class=nav>")

    def test_case_insensitive(self):
        out = replace_references('<a href="HTTP://X/Page2">', self.URL, self.NAME)
        self.assertEqual(out, '<a href="page2 (1).html">')

    def test_all_occurrences(self):
        out = replace_references('"http://x/page2" and "http://x/page2"', self.URL, "p.html")
        self.assertEqual(out, '"p.html" and "p.html"')

    def test_longer_urls_are_left_alone(self):
        content = '<a href="http://x/page2/sub"> <a href=http://x/page2#top>'
        self.assertEqual(replace_references(content, self.URL, self.NAME), content)

    def test_metacharacters_are_literal(self):
        url = "http://x/page.html?id=1"
        self.assertEqual(replace_references('"http://x/pageXhtml?id=1"', url, "p.html"), '"http://x/pageXhtml?id=1"')
        self.assertEqual(replace_references('"http://x/page.html?id=1"', url, "p.html"), '"p.html"')

    def test_filename_inserted_literally(self):
        out = replace_references('"http://x/page2"', self.URL, r"a\1.html")
        self.assertEqual(out, r'"a\1.html"')


class TestResolveReferences(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = Storage(self.root)

    def tearDown(self):
        self._tmp.cleanup()

    def test_rewrites_every_saved_page(self):
        a = processed("https://a.com/", "A.html", "http://a.com/")
        b = processed("https://a.com/b", "B page.html", "http://a.com/b")
        self.storage.write_text("A.html", '<a href="http://a.com/b">b</a> <a href="http://a.com/">me</a>')
        self.storage.write_text("B page.html", "<a href=http://a.com/>home</a>")

        count = resolve_references([a, b], self.storage)

        self.assertEqual(count, 2)
        self.assertEqual(
            self.storage.read_text("A.html"),
            '<a href="B page.html">b</a> <a href="http://a.com/">me</a>',
        )
        self.assertEqual(self.storage.read_text("B page.html"), "<a href=A.html>home</a>")

    def test_tasks_without_filename_are_ignored(self):
        a = processed("http://a.com/", "A.html")
        failed = processed("http://a.com/bad")
        pending = Task("http://a.com/p")
        pending.filename = "P.html"
        content = '<a href="http://a.com/bad"></a><a href="http://a.com/p"></a>'
        self.storage.write_text("A.html", content)

        self.assertEqual(resolve_references([a, failed, pending], self.storage), 1)
        self.assertEqual(self.storage.read_text("A.html"), content)

    def test_unreadable_file_is_skipped(self):
        a = processed("http://a.com/", "A.html")
        gone = processed("http://a.com/gone", "gone.html")
        self.storage.write_text("A.html", '"http://a.com/gone"')

        self.assertEqual(resolve_references([gone, a], self.storage), 1)
        self.assertEqual(self.storage.read_text("A.html"), '"gone.html"')
        self.assertFalse(self.storage.exists("gone.html"))


if __name__ == "__main__":
    unittest.main()
