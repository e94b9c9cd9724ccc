import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from deskhub import cli
from deskhub.listener import ListenerGroup


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        base = Path(self._temp.name)
        self.data_dir = base / "data"
        self.resources = base / "resources"
        (self.resources / "studio" / "dist").mkdir(parents=True)
        (self.resources / "studio" / "dist" / "index.html").write_text(
            "<html><head></head><body></body></html>", encoding="utf-8"
        )
        os.environ["DESKHUB_HOME"] = str(self.data_dir)

    def tearDown(self) -> None:
        os.environ.pop("DESKHUB_HOME", None)
        self._temp.cleanup()

    def _run(self, *args: str) -> tuple[int, str, str]:
        argv = [
            "--data-dir",
            str(self.data_dir),
            "--mode",
            "packaged",
            "--resource-dir",
            str(self.resources),
            *args,
        ]
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = cli.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_init_writes_config(self) -> None:
        code, output, _ = self._run("init")
        self.assertEqual(code, 0)
        self.assertIn("已完成初始化", output)
        self.assertTrue((self.data_dir / "config.yaml").exists())
        self.assertTrue((self.data_dir / "logs").is_dir())

    def test_projects_list_reports_missing_directories(self) -> None:
        code, output, _ = self._run("projects", "list")
        self.assertEqual(code, 0)
        lines = {line.split("\t")[0]: line for line in output.strip().splitlines()}
        self.assertIn("port=5174\tok", lines["studio"])
        self.assertIn("missing", lines["project2"])

    def test_resolve_prints_summary(self) -> None:
        code, output, _ = self._run("resolve", "myapp://studio/dist/index.html")
        self.assertEqual(code, 0)
        summary = json.loads(output)
        self.assertEqual(summary["status"], 200)
        self.assertEqual(summary["content_type"], "text/html")
        self.assertTrue(summary["rewritten"])

        code, output, _ = self._run("resolve", "myapp://studio/../../etc/passwd")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(output)["status"], 404)

    def test_config_set_then_get(self) -> None:
        code, output, _ = self._run("config", "set", "gateway.port", "6200")
        self.assertEqual(code, 0)
        self.assertIn("gateway.port", output)
        code, output, _ = self._run("config", "get", "gateway.port")
        self.assertEqual(code, 0)
        self.assertEqual(output.strip(), "6200")

    def test_config_show_with_sources(self) -> None:
        code, output, _ = self._run("config", "show", "--sources")
        self.assertEqual(code, 0)
        self.assertIn("source: cli", output)
        self.assertIn("source: default", output)

    def test_unknown_config_key_fails(self) -> None:
        code, _, err = self._run("config", "get", "gateway.nope")
        self.assertEqual(code, 1)
        self.assertIn("logs/runtime.log", err)

    def test_listeners_receive_configured_home_targets(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "config.yaml").write_text(
            'rewrite:\n  home_targets:\n    - "http://localhost:9000/"\n',
            encoding="utf-8",
        )
        with patch("deskhub.listener.start_project_listeners", return_value=ListenerGroup()) as start_mock:
            code, output, _ = self._run("listeners")
        self.assertEqual(code, 0)
        self.assertIn("沒有可啟動的專案伺服器", output)
        kwargs = start_mock.call_args.kwargs
        self.assertIn('["http://localhost:9000/"]', kwargs["fragment"])
        self.assertEqual(kwargs["scheme"], "myapp")

    def test_packaged_mode_without_directory_is_config_error(self) -> None:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = cli.main(["--data-dir", str(self.data_dir), "--mode", "packaged", "projects", "list"])
        self.assertEqual(code, 2)
        self.assertIn("設定錯誤", err.getvalue())


if __name__ == "__main__":
    unittest.main()
