import contextlib
import importlib.util
import io
import unittest
from pathlib import Path
from unittest.mock import patch

from storage_presence.db import InMemoryEdgeStore
from storage_presence.edges import EdgeService

SCRIPTS_DIR = Path(__file__).resolve().parents[2] / "scripts"
ITEM_A = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"
ITEM_B = "6fa459ea-ee8a-4ca4-894e-db77e160355e"


def load_script(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class ScanMissingEdgesTests(unittest.TestCase):
    def setUp(self):
        self.script = load_script("scan_missing_edges")
        self.store = InMemoryEdgeStore()
        service = EdgeService(self.store, clock=lambda: 1.0)
        service.record_upload(ITEM_A, "image", location="blob://a")
        service.record_upload(ITEM_B, "video", location="blob://b")

    def _run(self, *argv):
        stdout = io.StringIO()
        with patch("sys.argv", ["scan_missing_edges.py", *argv]), patch.object(
            self.script, "get_edge_store", return_value=self.store
        ), contextlib.redirect_stdout(stdout):
            code = self.script.main()
        return code, stdout.getvalue().splitlines()

    def test_non_positive_batch_size_is_rejected(self):
        for value in ("0", "-5"):
            with self.subTest(value=value):
                with contextlib.redirect_stderr(io.StringIO()):
                    with self.assertRaises(SystemExit) as ctx:
                        self._run("--batch-size", value)
                self.assertEqual(ctx.exception.code, 2)

    def test_pages_through_all_missing_items(self):
        code, lines = self._run("--batch-size", "1")
        self.assertEqual(code, 0)
        self.assertEqual(lines, [f"image {ITEM_A}", f"video {ITEM_B}"])

    def test_limit_stops_early(self):
        code, lines = self._run("--batch-size", "1", "--limit", "1")
        self.assertEqual(code, 0)
        self.assertEqual(lines, [f"image {ITEM_A}"])


if __name__ == "__main__":
    unittest.main()
