import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from deskhub.commands import ALL_VIEWS, CommandResult, HostCommands, UnknownCommand
from deskhub.resources.server import ResourceResponse, ResourceServer
from deskhub.views.registry import ViewRegistry
from deskhub.views.surface import HeadlessSurface

WINDOW = {"x": 0, "y": 40, "width": 1200, "height": 760}


class HostCommandsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.root = Path(self._temp.name)
        (self.root / "studio").mkdir()
        (self.root / "studio" / "index.html").write_text("<html><head></head></html>", encoding="utf-8")
        self.surface = HeadlessSurface(supports_destroy=False)
        self.commands = HostCommands(ResourceServer(self.root), ViewRegistry(self.surface))

    def tearDown(self) -> None:
        self._temp.cleanup()

    def test_create_and_list_views(self) -> None:
        result = self.commands.dispatch("createView", {"config": {"projectId": "studio", **WINDOW}})
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"created": True, "label": "child_studio"})
        again = self.commands.dispatch("create_view", {"project_id": "studio", **WINDOW})
        self.assertEqual(again.data["created"], False)

        listed = self.commands.dispatch("listViews")
        self.assertEqual(
            listed.data["views"],
            [
                {
                    "label": "child_studio",
                    "project_id": "studio",
                    "url": "myapp://studio/",
                    "visible": True,
                    "x": 0.0,
                    "y": 40.0,
                    "width": 1200.0,
                    "height": 760.0,
                }
            ],
        )

    def test_show_unknown_view_is_an_error_result(self) -> None:
        result = self.commands.dispatch("showView", {"projectId": "ghost"})
        self.assertIsInstance(result, CommandResult)
        self.assertFalse(result.ok)
        self.assertIn("child_ghost", result.error)

    def test_missing_project_id_is_an_error_result(self) -> None:
        result = self.commands.dispatch("hideView", {})
        self.assertFalse(result.ok)
        self.assertIn("projectId", result.error)

    def test_invalid_geometry_is_an_error_result(self) -> None:
        result = self.commands.create_view({"projectId": "studio", "x": 0, "y": 0, "width": "wide"})
        self.assertFalse(result.ok)
        self.assertEqual(len(self.commands.registry), 0)

    def test_hide_and_destroy_unknown_succeed(self) -> None:
        self.assertTrue(self.commands.hide_view("ghost").ok)
        result = self.commands.destroy_view("ghost")
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"outcome": "absent"})

    def test_close_project_window_suppresses_when_host_cannot_destroy(self) -> None:
        self.commands.create_view({"projectId": "studio", **WINDOW})
        result = self.commands.dispatch("closeProjectWindow", {"projectId": "studio"})
        self.assertEqual(result.data, {"outcome": "suppressed"})
        self.assertFalse(self.commands.registry.is_visible("studio"))

    def test_move_all_views(self) -> None:
        self.commands.create_view({"projectId": "studio", **WINDOW})
        self.commands.create_view({"projectId": "project2", **WINDOW, "visible": False})
        result = self.commands.move_view(ALL_VIEWS, {"x": 1, "y": 2, "width": 3, "height": 4})
        self.assertTrue(result.ok)
        self.assertEqual(sorted(result.data["updated"]), ["child_project2", "child_studio"])
        self.assertEqual(result.data["failed"], {})
        synced = self.commands.dispatch("syncViews", {"x": 5, "y": 5, "width": 5, "height": 5})
        self.assertTrue(synced.ok)

    def test_move_single_view(self) -> None:
        self.commands.create_view({"projectId": "studio", **WINDOW})
        result = self.commands.dispatch("moveView", {"projectId": "studio", "x": 9, "y": 9, "width": 90, "height": 90})
        self.assertTrue(result.ok)
        self.assertEqual(self.commands.registry.get("studio").geometry.width, 90.0)

    def test_resolve_resource_returns_response(self) -> None:
        response = self.commands.dispatch("resolveResource", {"locator": "myapp://studio/"})
        self.assertIsInstance(response, ResourceResponse)
        self.assertEqual(response.status, 200)

    def test_project_url_and_resource_dir(self) -> None:
        self.assertEqual(self.commands.get_project_url("studio").data, {"url": "myapp://studio/"})
        self.assertEqual(self.commands.dispatch("getResourceDir").data, {"path": str(self.root)})

    def test_unknown_command_raises(self) -> None:
        with self.assertRaises(UnknownCommand):
            self.commands.dispatch("launchRockets", {})

    def test_result_serialization(self) -> None:
        self.assertEqual(CommandResult(ok=True).to_dict(), {"ok": True})
        self.assertEqual(
            CommandResult(ok=False, error="boom").to_dict(),
            {"ok": False, "error": "boom"},
        )


if __name__ == "__main__":
    unittest.main()
