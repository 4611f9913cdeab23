from epub_pager.cache.manager import BookmarkManager
from epub_pager.cache.models import Bookmark
from epub_pager.cache.store import open_publication
from epub_pager.commands.bookmark import _take_bookmark
from epub_pager.core.pagination import PaginationController
from epub_pager.models.package import ReadingPosition
from epub_pager.models.preferences import Viewport

from tests.base import AsyncBaseTest, BaseTest, publication_files


class BookmarkManagerTest(BaseTest):

    def setUp(self):
        self.project = self.mkdtemp()
        self.book = self.create_epub()
        self.manager = BookmarkManager(self.project)

    def test_add_and_list_in_reading_order(self):
        later = Bookmark(cfi="epubcfi(/6/6!/4/4/1:3)", spine_index=1, offset_in_item=30)
        earlier = Bookmark(cfi="epubcfi(/6/2!/4/2/1:0)", spine_index=0, offset_in_item=0)
        broken = Bookmark(cfi="not a fragment", spine_index=0, offset_in_item=0)
        for bookmark in (later, broken, earlier):
            self.manager.add_bookmark(self.book, bookmark)

        listed = BookmarkManager(self.project).list_bookmarks(self.book)
        self.assertEqual([b.cfi for b in listed], [earlier.cfi, later.cfi, broken.cfi])
        self.assertTrue(all(b.file_hash == self.manager.get_file_hash(self.book) for b in listed))
        self.assertTrue((self.project / BookmarkManager.CACHE_DIR / "index.json").exists())

    def test_offsets_invalidated_by_changes(self):
        bookmark = self.manager.add_bookmark(
            self.book, Bookmark(cfi="epubcfi(/6/2!/4/2/1:0)", spine_index=0, offset_in_item=0)
        )
        self.assertTrue(self.manager.positions_valid(self.book, bookmark))

        files = publication_files()
        files["OEBPS/chapter1.xhtml"] = files["OEBPS/chapter1.xhtml"].replace(b"April", b"May")
        self.book.write_bytes(self.create_epub(files).read_bytes())
        self.assertFalse(BookmarkManager(self.project).positions_valid(self.book, bookmark))

    def test_directory_publication_with_cache_inside(self):
        book = self.create_directory()
        manager = BookmarkManager(book)
        bookmark = manager.add_bookmark(
            book, Bookmark(cfi="epubcfi(/6/2!/4/2/1:0)", spine_index=0, offset_in_item=0)
        )
        self.assertTrue(manager.positions_valid(book, bookmark))
        (book / "OEBPS" / "extra.css").write_text("p { margin: 0 }")
        self.assertFalse(manager.positions_valid(book, bookmark))

    def test_remove(self):
        bookmark = self.manager.add_bookmark(
            self.book, Bookmark(cfi="epubcfi(/6/2!/4/2/1:0)", spine_index=0, offset_in_item=0)
        )
        self.assertTrue(self.manager.remove_bookmark(self.book, bookmark))
        self.assertEqual(self.manager.list_bookmarks(self.book), [])
        self.assertFalse(self.manager.remove_bookmark(self.book, bookmark))

    def test_clear_and_list_cached(self):
        self.assertEqual(self.manager.clear_cache(), 0)
        self.manager.add_bookmark(
            self.book, Bookmark(cfi="epubcfi(/6/2!/4/2/1:0)", spine_index=0, offset_in_item=0)
        )
        cached = self.manager.list_cached()
        self.assertEqual([path for path, _ in cached], [str(self.book.resolve())])
        self.assertEqual(self.manager.clear_cache(), 1)
        self.assertEqual(self.manager.list_cached(), [])
        self.assertEqual(self.manager.list_bookmarks(self.book), [])


class BookmarkRoundTripTest(AsyncBaseTest):

    async def test_bookmark_resolves_to_same_page(self):
        book = self.create_directory()
        link = "OEBPS/chapter2.xhtml#target"
        bookmark = await _take_bookmark(book, None, link, "poster")
        self.assertEqual(bookmark.label, "poster")
        self.assertEqual(bookmark.spine_index, 1)

        # A reader with a different page size resolves the address again
        store, package = await open_publication(book)
        controller = PaginationController(package, Viewport(120, 60, 16.0))
        page = await controller.navigate_to_fragment(bookmark.cfi)
        self.assertEqual(page.spine_index, 1)
        self.assertLessEqual(page.offset, bookmark.offset_in_item)
        self.assertLess(bookmark.offset_in_item, page.offset + len(page.text))

        # Raw offsets land on the same page while the publication is unchanged
        same = await controller.set_position(
            ReadingPosition(spine_index=bookmark.spine_index, offset_in_item=bookmark.offset_in_item)
        )
        self.assertEqual(same.offset, page.offset)
