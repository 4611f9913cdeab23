from unittest.mock import patch

from epub_pager.cache.fetch import DirectoryFetcher, ZipFetcher, open_container
from epub_pager.cache.loader import ResourceLoader
from epub_pager.cache.store import PackageStore, open_publication
from epub_pager.errors import ResourceNotFoundError

from tests.base import CHAPTER1, FONT, UID, AsyncBaseTest, publication_files


class CountingFetcher(DirectoryFetcher):

    def __init__(self, root):
        super().__init__(root)
        self.reads = []

    def read(self, url):
        self.reads.append(url)
        return super().read(url)


class StoreTest(AsyncBaseTest):

    async def test_open_directory(self):
        store, package = await open_publication(self.create_directory())
        self.assertIsInstance(store.fetcher, DirectoryFetcher)
        self.assertEqual(package.uid, UID)
        self.assertEqual([item.id for item in package.spine], ["c1", "c2", "c3"])
        self.assertEqual(package.epub_url, store.base_url)
        # Unpacked directories have no archive listing
        self.assertEqual(package.epage_count, 0)
        self.assertIs(store.primary_opf_by_epub_url[store.base_url], package)

    async def test_open_zip(self):
        store, package = await open_publication(self.create_epub())
        with store:
            self.assertIsInstance(store.fetcher, ZipFetcher)
            self.assertTrue(all(item.compressed for item in package.spine))
            self.assertTrue(all(item.epage_count >= 1 for item in package.spine))
            self.assertEqual(package.epage_count, sum(item.epage_count for item in package.spine))
        # The archive is released on exit
        with self.assertRaises(ValueError):
            await store.read_bytes(package.spine[0].url)

    async def test_failed_open_releases_archive(self):
        files = publication_files()
        del files["OEBPS/content.opf"]
        book = self.create_epub(files)
        with patch.object(ZipFetcher, "close", autospec=True) as close:
            with self.assertRaises(ResourceNotFoundError):
                await open_publication(book)
        close.assert_called_once()

    async def test_deobfuscated_reads(self):
        for path in (self.create_directory(), self.create_epub()):
            store, package = await open_publication(path)
            url = package.item_by_id("font").url
            self.assertIsNotNone(store.deobfuscator_for(url))
            self.assertEqual(await store.read_bytes(url), FONT)
            self.assertEqual(await store.read_bytes(url + "#frag"), FONT)
            chapter = package.spine[0].url
            self.assertIsNone(store.deobfuscator_for(chapter))
            self.assertEqual(await store.read_bytes(chapter), CHAPTER1.encode("utf-8"))

    async def test_load_opf_is_cached(self):
        store = PackageStore(open_container(self.create_directory()))
        first = await store.load_epub()
        second = await store.load_opf(store.base_url, "OEBPS/content.opf")
        self.assertIs(first, second)
        self.assertIn(first.opf_url, store.opf_by_url)

    async def test_missing_container(self):
        files = publication_files()
        del files["META-INF/container.xml"]
        with self.assertLogs("epub_pager.cache.store", level="WARNING"):
            store, package = await open_publication(self.create_directory(files))
        self.assertIsNone(package)

    async def test_container_without_rootfile(self):
        files = publication_files()
        files["META-INF/container.xml"] = b"<container><rootfiles/></container>"
        store, package = await open_publication(self.create_directory(files))
        self.assertIsNone(package)

    async def test_missing_package_document(self):
        files = publication_files()
        del files["OEBPS/content.opf"]
        with self.assertRaises(ResourceNotFoundError):
            await open_publication(self.create_directory(files))

    async def test_single_chapter(self):
        root = self.create_directory()
        store, package = await open_publication(root / "OEBPS" / "chapter1.xhtml")
        self.assertIsNone(package.opf_root)
        self.assertEqual(package.spine[0].id, "item1")
        document = await store.load(package.spine[0].url)
        self.assertTrue(document.text.startswith("Chapter One"))


class LoaderTest(AsyncBaseTest):

    async def test_loads_are_shared(self):
        fetcher = CountingFetcher(self.create_directory())
        loader = ResourceLoader(fetcher)
        url = fetcher.base_url + "OEBPS/chapter1.xhtml"
        loader.fetch(url)
        first = await loader.load(url)
        second = await loader.load(url + "#p1")
        self.assertIs(first, second)
        self.assertEqual(fetcher.reads, [url])

    async def test_failed_load_is_retried(self):
        root = self.create_directory()
        fetcher = CountingFetcher(root)
        loader = ResourceLoader(fetcher)
        url = fetcher.base_url + "OEBPS/late.xhtml"
        with self.assertRaises(ResourceNotFoundError):
            await loader.load(url)
        (root / "OEBPS" / "late.xhtml").write_bytes(CHAPTER1.encode("utf-8"))
        document = await loader.load(url)
        self.assertEqual(document.url, url)
        self.assertEqual(len(fetcher.reads), 2)

    async def test_missing_xml_is_none(self):
        fetcher = DirectoryFetcher(self.create_directory())
        loader = ResourceLoader(fetcher)
        self.assertIsNone(await loader.load_xml(fetcher.base_url + "nothing.xml"))

    async def test_paths_outside_the_publication(self):
        root = self.create_directory()
        fetcher = DirectoryFetcher(root / "OEBPS")
        with self.assertRaises(ResourceNotFoundError):
            fetcher.read(fetcher.base_url + "../META-INF/container.xml")
        with self.assertRaises(ResourceNotFoundError):
            fetcher.read("file:///etc/passwd")

    async def test_zip_listing(self):
        fetcher = open_container(self.create_epub())
        names = {entry.name: entry for entry in fetcher.listing()}
        self.assertIn("OEBPS/chapter%203.xhtml", names)
        self.assertEqual(names["mimetype"].method, 0)
        self.assertEqual(names["OEBPS/chapter1.xhtml"].method, 8)
        fetcher.close()
