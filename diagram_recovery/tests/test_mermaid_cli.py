"""
Tests for the Node.js mermaid backend, with subprocesses faked out.
"""

import asyncio
import json
from pathlib import Path

import pytest

from diagram_recovery.render_outcome import DiagramRenderError, DiagramSyntaxError
from diagram_recovery.tools import mermaid_cli
from diagram_recovery.tools.mermaid_cli import NodeMermaidBackend


class FakeProcess:
    def __init__(self, stdout=b"", stderr=b"", returncode=0, hang=False):
        self._stdout = stdout
        self._stderr = stderr
        self.returncode = returncode
        self.hang = hang
        self.stdin_data = None
        self.killed = False

    async def communicate(self, data=None):
        self.stdin_data = data
        if self.hang:
            await asyncio.sleep(10)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        return self.returncode


@pytest.fixture
def spawn(monkeypatch):
    """Patch subprocess creation; returns the list of spawned (args, process)"""
    spawned = []

    def install(process, on_spawn=None):
        async def fake_exec(*args, **kwargs):
            if on_spawn:
                on_spawn(args)
            spawned.append((args, process))
            return process

        monkeypatch.setattr(mermaid_cli.asyncio, "create_subprocess_exec", fake_exec)
        return spawned

    return install


class TestNodeMermaidBackend:

    @pytest.mark.asyncio
    async def test_parse_valid(self, config, spawn):
        spawned = spawn(FakeProcess(stdout=json.dumps({"valid": True}).encode()))

        await NodeMermaidBackend(config).parse("graph TD\nA-->B")

        args, process = spawned[0]
        assert args[0] == "node"
        assert process.stdin_data == b"graph TD\nA-->B"

    @pytest.mark.asyncio
    async def test_parse_invalid_raises_syntax_error(self, config, spawn):
        spawn(FakeProcess(stdout=json.dumps({"valid": False, "error": "Parse error on line 2"}).encode()))

        with pytest.raises(DiagramSyntaxError) as exc_info:
            await NodeMermaidBackend(config).parse("graph TD\nA[")

        assert exc_info.value.detail == "Parse error on line 2"

    @pytest.mark.asyncio
    async def test_parse_bad_json(self, config, spawn):
        spawn(FakeProcess(stdout=b"Cannot find module 'mermaid'"))
        with pytest.raises(DiagramSyntaxError, match="Invalid JSON"):
            await NodeMermaidBackend(config).parse("graph TD")

    @pytest.mark.asyncio
    async def test_parse_timeout_kills_process(self, spawn):
        from diagram_recovery.config import RecoveryConfig
        process = FakeProcess(hang=True)
        spawn(process)

        with pytest.raises(DiagramSyntaxError, match="timed out"):
            await NodeMermaidBackend(RecoveryConfig(validation_timeout=0.01)).parse("graph TD")
        assert process.killed

    @pytest.mark.asyncio
    async def test_missing_binary(self, config, monkeypatch):
        async def missing(*args, **kwargs):
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(mermaid_cli.asyncio, "create_subprocess_exec", missing)
        with pytest.raises(DiagramRenderError, match="Executable not found"):
            await NodeMermaidBackend(config).render("graph TD", "d-1")

    @pytest.mark.asyncio
    async def test_render_reads_svg(self, config, spawn):
        def write_svg(args):
            output = Path(args[args.index("-o") + 1])
            output.write_text('<svg id="d-1"></svg>', encoding="utf-8")

        spawned = spawn(FakeProcess(), on_spawn=write_svg)

        svg = await NodeMermaidBackend(config).render("graph TD\nA-->B", "d-1")

        assert svg == '<svg id="d-1"></svg>'
        args, _ = spawned[0]
        assert args[0] == "mmdc"
        assert args[args.index("-I") + 1] == "d-1"

    @pytest.mark.asyncio
    async def test_render_failure(self, config, spawn):
        spawn(FakeProcess(returncode=1, stderr=b"Error: Parse error"))
        with pytest.raises(DiagramRenderError, match="mmdc failed"):
            await NodeMermaidBackend(config).render("graph TD\nA[", "d-1")

    def test_is_available(self, config, monkeypatch):
        monkeypatch.setattr(mermaid_cli.shutil, "which", lambda name: "/usr/bin/node" if name == "node" else None)
        assert NodeMermaidBackend(config).is_available() == {"node": True, "mmdc": False}
