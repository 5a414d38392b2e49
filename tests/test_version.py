import zbxsender
import unittest


class VersionTestCase(unittest.TestCase):
    """ Basic test cases """

    def test_version(self):
        """ check zbxsender exposes a version attribute """
        self.assertTrue(hasattr(zbxsender, "__version__"))
        self.assertIsInstance(zbxsender.__version__, str)


if __name__ == "__main__":
    unittest.main()
