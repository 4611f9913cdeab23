"""Shared fixtures for the test suite."""

import atexit
import shutil
import tempfile
import unittest
import zipfile
from functools import partial
from pathlib import Path

from epub_pager.core.deobfuscator import make_deobfuscator
from epub_pager.models.preferences import LayoutPreferences, Viewport

rmtree = partial(shutil.rmtree, ignore_errors=True)

UID = "urn:uuid:1234-5678"

CONTAINER = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

ENCRYPTION = """<?xml version="1.0" encoding="UTF-8"?>
<encryption xmlns="urn:oasis:names:tc:opendocument:xmlns:container"
    xmlns:enc="http://www.w3.org/2001/04/xmlenc#">
  <enc:EncryptedData>
    <enc:EncryptionMethod Algorithm="http://www.idpf.org/2008/embedding"/>
    <enc:CipherData>
      <enc:CipherReference URI="OEBPS/fonts/serif.otf"/>
    </enc:CipherData>
  </enc:EncryptedData>
  <enc:EncryptedData>
    <enc:EncryptionMethod Algorithm="http://ns.adobe.com/pdf/enc#RC"/>
    <enc:CipherData>
      <enc:CipherReference URI="OEBPS/fonts/other.otf"/>
    </enc:CipherData>
  </enc:EncryptedData>
</encryption>
"""

# The identifier is split over lines; whitespace is not part of the key
OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid"><metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="uid">
      urn:uuid:1234-
      5678
    </dc:identifier>
    <dc:title>Test Book</dc:title>
    <dc:language>en</dc:language>
  </metadata><manifest>
    <item id="c1" href="chapter1.xhtml" media-type="application/xhtml+xml"/>
    <item id="c2" href="chapter2.xhtml" media-type="application/xhtml+xml"/>
    <item id="c3" href="chapter%203.xhtml" media-type="application/xhtml+xml"/>
    <item id="font" href="fonts/serif.otf" media-type="font/otf"/>
    <item id="handler" href="handler.xhtml" media-type="application/xhtml+xml"/>
    <item id="chart" href="data/chart.xml" media-type="application/x-chart+xml"/>
  </manifest><spine>
    <itemref idref="c1"/>
    <itemref idref="missing"/>
    <itemref idref="c2"/>
    <itemref idref="c3"/>
  </spine><bindings>
    <mediaType media-type="application/x-chart+xml" handler="handler"/>
    <mediaType media-type="application/x-unknown" handler="nope"/>
  </bindings></package>
"""

CHAPTER1 = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>One</title></head><body><h1 id="one">Chapter One</h1><p id="p1">It was a bright cold day in April and the clocks were striking thirteen.</p><p id="p2">Winston Smith slipped quickly through the glass doors of Victory Mansions.</p></body></html>
"""

CHAPTER2 = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>Two</title></head><body><h1 id="two">Chapter Two</h1><p>The hallway smelt of boiled cabbage and old rag mats.</p><object data="data/chart.xml" width="200" height="100"><param name="mode" value="bars"/></object><p id="target">At one end of it a coloured poster had been tacked to the wall.</p><p>It depicted simply an enormous face, more than a metre wide.</p></body></html>
"""

# Fixed layout chapter twice the size of the test viewport
CHAPTER3 = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>Three</title><meta name="viewport" content="width=160, height=80"/></head><body><p>The end.</p></body></html>
"""

HANDLER = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><head><title>Chart</title></head><body/></html>
"""

FONT = bytes(range(256)) * 5

# 80x40 pixels at 16px: 10 characters on 2 lines
VIEW_WIDTH = 80
VIEW_HEIGHT = 40


def publication_files() -> dict[str, bytes]:
    return {
        "mimetype": b"application/epub+zip",
        "META-INF/container.xml": CONTAINER.encode("utf-8"),
        "META-INF/encryption.xml": ENCRYPTION.encode("utf-8"),
        "OEBPS/content.opf": OPF.encode("utf-8"),
        "OEBPS/chapter1.xhtml": CHAPTER1.encode("utf-8"),
        "OEBPS/chapter2.xhtml": CHAPTER2.encode("utf-8"),
        "OEBPS/chapter 3.xhtml": CHAPTER3.encode("utf-8"),
        "OEBPS/handler.xhtml": HANDLER.encode("utf-8"),
        "OEBPS/data/chart.xml": b"<chart/>",
        "OEBPS/fonts/serif.otf": make_deobfuscator(UID)(FONT),
    }


class BaseTest(unittest.TestCase):

    longMessage = True
    maxDiff = None

    def mkdtemp(self) -> Path:
        ans = tempfile.mkdtemp(prefix="epub_pager_test_")
        atexit.register(rmtree, ans)
        return Path(ans)

    def create_directory(self, files: dict[str, bytes] | None = None) -> Path:
        """Write an unpacked publication and return its directory."""
        root = self.mkdtemp() / "book"
        for name, data in (files or publication_files()).items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return root

    def create_epub(self, files: dict[str, bytes] | None = None) -> Path:
        """Write a zipped publication and return its path."""
        path = self.mkdtemp() / "book.epub"
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in (files or publication_files()).items():
                method = zipfile.ZIP_STORED if name == "mimetype" else zipfile.ZIP_DEFLATED
                zf.writestr(name, data, compress_type=method)
        return path

    def viewport(self) -> Viewport:
        return Viewport(VIEW_WIDTH, VIEW_HEIGHT, 16.0)

    def preferences(self) -> LayoutPreferences:
        return LayoutPreferences()


class AsyncBaseTest(BaseTest, unittest.IsolatedAsyncioTestCase):
    pass
