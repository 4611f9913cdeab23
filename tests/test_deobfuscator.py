import hashlib
import unittest

from epub_pager.core.deobfuscator import OBFUSCATED_LENGTH, make_deobfuscator


class DeobfuscatorTest(unittest.TestCase):

    def test_involution(self):
        transform = make_deobfuscator("urn:uuid:1234-5678")
        for length in (0, 1, 19, 20, 21, 1039, 1040, 1041, 5000):
            data = bytes(i % 251 for i in range(length))
            self.assertEqual(transform(transform(data)), data, length)
            self.assertEqual(len(transform(data)), length)

    def test_only_prefix_is_changed(self):
        transform = make_deobfuscator("book-id")
        data = b"\x00" * 2000
        out = transform(data)
        key = hashlib.sha1(b"book-id").digest()
        self.assertEqual(out[:20], key)
        self.assertEqual(out[20:40], key)
        self.assertEqual(out[OBFUSCATED_LENGTH:], data[OBFUSCATED_LENGTH:])

    def test_key_depends_on_identifier(self):
        data = b"x" * 64
        self.assertNotEqual(make_deobfuscator("a")(data), make_deobfuscator("b")(data))

    def test_unicode_identifier(self):
        transform = make_deobfuscator("urn:isbn:978-ä")
        key = hashlib.sha1("urn:isbn:978-ä".encode("utf-8")).digest()
        self.assertEqual(transform(b"\x00" * 20), key)
