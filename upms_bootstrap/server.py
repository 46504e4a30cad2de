"""Foreground HTTP server process and shutdown handling."""

import asyncio
import logging
import os
import signal
from typing import List, Optional

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5  # seconds to wait for graceful shutdown


class SignalHandler:
    """Turns SIGINT/SIGTERM into a shutdown event."""

    def __init__(self):
        self.shutdown_event = asyncio.Event()

    def setup(self):
        """Set up signal handlers."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, signum):
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        self.shutdown_event.set()

    async def wait_for_shutdown(self):
        """Wait for shutdown signal."""
        await self.shutdown_event.wait()


class ServerProcess:
    """Runs the HTTP server as a child in its own process group."""

    def __init__(self, command: List[str], cwd: Optional[str] = None):
        self.command = command
        self.cwd = cwd
        self.process: Optional[asyncio.subprocess.Process] = None

    async def start(self):
        logger.info("Starting server: %s", ' '.join(self.command))
        self.process = await asyncio.create_subprocess_exec(
            *self.command,
            cwd=self.cwd,
            start_new_session=True,
        )

    async def run_until_shutdown(self, signal_handler: SignalHandler) -> int:
        """Block until the server exits or a shutdown signal arrives.

        Returns the server's exit code.
        """
        if self.process is None:
            raise RuntimeError("Server process was not started")

        exited = asyncio.create_task(self.process.wait())
        shutdown = asyncio.create_task(signal_handler.wait_for_shutdown())
        done, pending = await asyncio.wait({exited, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if exited in done:
            rc = exited.result()
            level = logging.INFO if rc == 0 else logging.ERROR
            logger.log(level, "Server exited with code %d", rc)
            return rc

        await self.stop()
        return 0

    async def stop(self):
        """Stop the process and its entire process group."""
        process = self.process
        if process is None or process.returncode is not None:
            return

        logger.info("Stopping server...")
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except (ProcessLookupError, PermissionError, OSError):
            process.terminate()

        try:
            await asyncio.wait_for(process.wait(), timeout=SHUTDOWN_TIMEOUT)
            logger.info("✓ Server stopped")
        except asyncio.TimeoutError:
            logger.warning("Force killing server...")
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError, OSError):
                process.kill()
            await process.wait()
