"""
Node.js Mermaid Backend

Production MermaidBackend that shells out to a local mermaid install:
`node` runs mermaid.parse for validation and the mermaid CLI (`mmdc`) draws
SVG. Both calls run as asyncio subprocesses with configurable timeouts.
"""

import asyncio
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from diagram_recovery.config import RecoveryConfig, get_recovery_config
from diagram_recovery.render_outcome import DiagramRenderError, DiagramSyntaxError

logger = logging.getLogger(__name__)

PARSE_SCRIPT = '''
const mermaid = require('mermaid');

process.stdin.resume();
process.stdin.setEncoding('utf8');

let input = '';
process.stdin.on('data', function(chunk) {
    input += chunk;
});

process.stdin.on('end', async function() {
    try {
        const code = input.trim();
        if (!code) {
            console.log(JSON.stringify({valid: false, error: "Empty input"}));
            return;
        }

        const api = mermaid.default || mermaid;
        api.initialize({startOnLoad: false, securityLevel: 'strict'});

        await api.parse(code);
        console.log(JSON.stringify({valid: true}));
    } catch (error) {
        console.log(JSON.stringify({valid: false, error: error.message || String(error)}));
    }
});
'''


class NodeMermaidBackend:
    """Mermaid parse/render via Node.js subprocesses"""

    def __init__(self, config: Optional[RecoveryConfig] = None):
        self.config = config or get_recovery_config()

    async def parse(self, text: str) -> None:
        returncode, stdout, stderr = await self._run(
            [self.config.node_binary, "-e", PARSE_SCRIPT],
            stdin=text,
            timeout=self.config.validation_timeout,
            error_cls=DiagramSyntaxError,
        )
        if returncode != 0:
            raise DiagramSyntaxError(f"Validation process error: {stderr.strip()}")

        try:
            result = json.loads(stdout)
        except json.JSONDecodeError:
            raise DiagramSyntaxError("Invalid JSON response from validator")

        if not result.get("valid"):
            raise DiagramSyntaxError(result.get("error") or "Unknown validation error")

    async def render(self, text: str, element_id: str) -> str:
        with tempfile.TemporaryDirectory(prefix="mermaid-") as workdir:
            source = Path(workdir) / "diagram.mmd"
            target = Path(workdir) / "diagram.svg"
            source.write_text(text, encoding="utf-8")

            returncode, _, stderr = await self._run(
                [self.config.mmdc_binary, "-i", str(source), "-o", str(target),
                 "-b", "transparent", "-I", element_id, "-q"],
                timeout=self.config.render_timeout,
                error_cls=DiagramRenderError,
            )
            if returncode != 0 or not target.exists():
                raise DiagramRenderError(f"mmdc failed: {stderr.strip() or 'no output produced'}")

            return target.read_text(encoding="utf-8")

    async def _run(self, args: List[str], timeout: float, error_cls,
                   stdin: Optional[str] = None) -> Tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.warning(f"⚠️ Mermaid tooling not found: {args[0]}")
            raise error_cls(f"Executable not found: {args[0]}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(stdin.encode("utf-8") if stdin is not None else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise error_cls(f"{Path(args[0]).name} timed out after {timeout}s")

        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def is_available(self) -> dict:
        """Report which external binaries can be found on PATH"""
        return {
            "node": shutil.which(self.config.node_binary) is not None,
            "mmdc": shutil.which(self.config.mmdc_binary) is not None,
        }
