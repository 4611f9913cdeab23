from typer.testing import CliRunner

from epub_pager.cli import app

from tests.base import FONT, UID, BaseTest

runner = CliRunner()


class CliTest(BaseTest):

    def setUp(self):
        self.book = self.create_epub()
        self.project = self.mkdtemp()

    def invoke(self, *args):
        return runner.invoke(app, [str(a) for a in args])

    def test_info(self):
        result = self.invoke("info", self.book)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn(UID, result.output)
        self.assertIn("Spine", result.output)

    def test_info_without_package(self):
        result = self.invoke("info", self.mkdtemp())
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.output)

    def test_missing_path(self):
        result = self.invoke("info", self.mkdtemp() / "nothing.epub")
        self.assertNotEqual(result.exit_code, 0)

    def test_pages(self):
        result = self.invoke("pages", self.book, "--width", 80, "--height", 40)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Total pages:", result.output)

    def test_show(self):
        result = self.invoke("show", self.book, "--last")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("The end.", result.output)

        result = self.invoke("show", self.book, "--cfi", "epubcfi(/6/4!/4/2/1:0)")
        self.assertEqual(result.exit_code, 1)

    def test_cfi_and_resolve(self):
        result = self.invoke("cfi", self.book, 1, 0)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("epubcfi(/6/2!/4/2[one]/1:0)", result.output)

        result = self.invoke("resolve", self.book, "epubcfi(/6/6!/4/8[target])")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Estimated Page", result.output)

        result = self.invoke("resolve", self.book, "epubcfi(/6/4!/4/2/1:0)")
        self.assertEqual(result.exit_code, 1)

        result = self.invoke("cfi", self.book, 9, 0)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("out of range", result.output)

    def test_deobfuscate(self):
        output = self.project / "serif.otf"
        result = self.invoke("deobfuscate", self.book, "OEBPS/fonts/serif.otf", "-o", output)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(output.read_bytes(), FONT)

    def test_bookmarks(self):
        result = self.invoke(
            "bookmark", "add", self.book,
            "--link", "OEBPS/chapter2.xhtml#target",
            "--label", "poster",
            "--dir", self.project,
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Saved bookmark", result.output)

        result = self.invoke("bookmark", "list", self.book, "--dir", self.project)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("poster", result.output)

        result = self.invoke("bookmark", "publications", "--dir", self.project)
        self.assertIn("Bookmarked Publications", result.output)

        result = self.invoke("bookmark", "remove", self.book, 2, "--dir", self.project)
        self.assertEqual(result.exit_code, 1)
        result = self.invoke("bookmark", "remove", self.book, 1, "--dir", self.project)
        self.assertEqual(result.exit_code, 0, result.output)

        result = self.invoke("bookmark", "clear", "--dir", self.project)
        self.assertIn("Cleared bookmarks of 1 publication(s)", result.output)
