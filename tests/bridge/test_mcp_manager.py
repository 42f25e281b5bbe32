import asyncio
import sys
import unittest
from pathlib import Path

from recipe_vault_chat.errors import McpProcessExitedError, UnknownToolError
from recipe_vault_chat.mcp.mcp_manager import McpManager
from recipe_vault_chat.messages import ToolCall

FAKE_SERVER = str(Path(__file__).with_name("fake_mcp_server.py"))


def _server(label: str) -> dict:
    return {"command": sys.executable, "args": [FAKE_SERVER, label], "env": {}}


class McpManagerTests(unittest.TestCase):
    def test_routes_tools_and_later_server_wins_duplicates(self) -> None:
        async def go():
            manager = McpManager({"first": _server("first"), "second": _server("second")})
            try:
                await manager.start()
                echoed = await manager.execute_tool(ToolCall(id="t1", name="echo", arguments={"text": "abc"}))
                first_info = await manager.call_tool("first_info")
                names = [t.name for t in manager.tools]
                self.assertEqual(["first", "second"], manager.server_names)
                return echoed, first_info, names, manager.server_for("echo"), manager.server_for("first_info")
            finally:
                await manager.stop()

        echoed, first_info, names, echo_owner, info_owner = asyncio.run(go())

        self.assertEqual("second:abc", echoed)
        self.assertEqual("first", first_info)
        self.assertEqual(1, names.count("echo"))
        self.assertIn("second_info", names)
        self.assertEqual("second", echo_owner)
        self.assertEqual("first", info_owner)

    def test_unknown_tool_raises(self) -> None:
        async def go():
            manager = McpManager({"only": _server("only")})
            try:
                await manager.start()
                await manager.execute_tool(ToolCall(id="t1", name="nope", arguments={}))
            finally:
                await manager.stop()

        with self.assertRaises(UnknownToolError) as ctx:
            asyncio.run(go())
        self.assertEqual("Unknown tool: nope", str(ctx.exception))

    def test_stop_clears_registry_and_start_restarts(self) -> None:
        async def go():
            manager = McpManager({"only": _server("only")})
            try:
                await manager.start()
                running_before = manager.is_running
                await manager.stop()
                stopped = (manager.is_running, manager.tools, manager.server_for("echo"))
                await manager.start()
                echoed = await manager.call_tool("echo", {"text": "again"})
                return running_before, stopped, echoed
            finally:
                await manager.stop()

        running_before, stopped, echoed = asyncio.run(go())

        self.assertTrue(running_before)
        self.assertEqual((False, [], None), stopped)
        self.assertEqual("only:again", echoed)

    def test_failed_start_stops_servers_already_started(self) -> None:
        async def go():
            manager = McpManager({
                "recipes": _server("recipes"),
                "fetch": {"command": sys.executable, "args": ["-c", "pass"]},
            })
            outcomes = []
            for _ in range(2):
                try:
                    await manager.start()
                except McpProcessExitedError:
                    outcomes.append(manager._servers["recipes"].is_running)
            return outcomes, manager.tools

        outcomes, tools = asyncio.run(go())

        self.assertEqual([False, False], outcomes)
        self.assertEqual([], tools)

    def test_concurrent_calls_on_separate_servers(self) -> None:
        async def go():
            manager = McpManager({"first": _server("first"), "second": _server("second")})
            try:
                await manager.start()
                return await asyncio.gather(*(
                    manager.call_tool(name) for name in ["first_info", "second_info"] * 4
                ))
            finally:
                await manager.stop()

        self.assertEqual(["first", "second"] * 4, asyncio.run(go()))

    def test_no_servers(self) -> None:
        manager = McpManager({})
        asyncio.run(manager.start())
        self.assertTrue(manager.is_running)
        self.assertEqual([], manager.tools)


if __name__ == "__main__":
    unittest.main()
