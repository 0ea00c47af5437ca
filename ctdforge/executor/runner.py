"""Out-of-process execution of extended sequences.

Sequences are split into batches of ``batch_size``. Each batch is written
to a JSON file and executed by ``ctdforge.executor.harness`` in a fresh
interpreter whose working directory is a throwaway temporary directory.
A batch that exceeds ``execution_timeout`` is killed and every sequence in
it is reported with ``error="timeout"``; a batch whose harness exits
abnormally or writes unreadable results is reported with ``error="crash"``.
Later batches run regardless.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path

from ctdforge.config import ForgeConfig
from ctdforge.errors import ExecutionError, ExecutionTimeoutError
from ctdforge.executor.results import ExecutionResult
from ctdforge.extender import ExtendedSequence

logger = logging.getLogger(__name__)

# Directory containing the ctdforge package, so the harness is importable.
PACKAGE_ROOT = str(Path(__file__).resolve().parents[2])


class SequenceExecutor:
    """Runs extended sequences in isolated subprocesses.

    Example:
        >>> executor = SequenceExecutor(ForgeConfig(batch_size=10))
        >>> results = executor.execute(extender.sequences)
        >>> results["ext_seq_0"].normal_termination
        True
    """

    def __init__(self, config: ForgeConfig, classpath: Sequence[str] | None = None) -> None:
        self.config = config
        self.classpath = list(classpath if classpath is not None else config.classpath)

    def execute(
        self,
        sequences: Sequence[ExtendedSequence],
        record_all: bool | None = None,
    ) -> dict[str, ExecutionResult]:
        """Execute all sequences; return results keyed by seq_id.

        Args:
            sequences: Sequences to run, in batch order.
            record_all: Record every statement's value and type. Defaults to
                ``config.record_all_results``.
        """
        if record_all is None:
            record_all = self.config.record_all_results
        results: dict[str, ExecutionResult] = {}
        size = self.config.batch_size
        batches = [sequences[i:i + size] for i in range(0, len(sequences), size)]
        for number, batch in enumerate(batches, start=1):
            logger.info(f"Executing batch {number}/{len(batches)} ({len(batch)} sequences)")
            try:
                results.update(self.run_batch(batch, record_all))
            except ExecutionError as e:
                logger.warning(f"Batch {number} failed: {e}")
                results.update(self.error_results(batch, e.kind))
        return results

    def run_batch(self, batch: Sequence[ExtendedSequence], record_all: bool = False) -> dict[str, ExecutionResult]:
        """Run one batch in a subprocess.

        Raises:
            ExecutionTimeoutError: If the subprocess exceeds the timeout.
            ExecutionError: If the subprocess crashes or its results are unreadable.
        """
        with tempfile.TemporaryDirectory(prefix="ctdforge-exec-") as workdir:
            batch_file = Path(workdir) / "batch.json"
            results_file = Path(workdir) / "results.json"
            batch_file.write_text(
                json.dumps({"sequences": {s.seq_id: s.to_batch_entry() for s in batch}})
            )

            command = [
                sys.executable, "-m", "ctdforge.executor.harness",
                str(batch_file), str(results_file),
                "--executions", str(self.config.executions_per_sequence),
            ]
            if record_all:
                command.append("--all-results")

            try:
                completed = subprocess.run(
                    command,
                    cwd=workdir,
                    stdin=subprocess.DEVNULL,
                    env=self._environment(),
                    capture_output=True,
                    text=True,
                    timeout=self.config.execution_timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise ExecutionTimeoutError(
                    f"Batch exceeded {self.config.execution_timeout}s", cause=e
                ) from e

            if completed.returncode != 0:
                raise ExecutionError(
                    f"Harness exited with status {completed.returncode}: {completed.stderr.strip()[-500:]}"
                )
            try:
                raw = json.loads(results_file.read_text())
            except (OSError, json.JSONDecodeError) as e:
                raise ExecutionError(f"Unreadable results file: {e}", cause=e) from e

        results = {seq_id: ExecutionResult.from_dict(seq_id, data) for seq_id, data in raw.items()}
        missing = [s for s in batch if s.seq_id not in results]
        if missing:
            logger.warning(f"{len(missing)} sequences missing from harness results")
            results.update(self.error_results(missing, "crash"))
        return results

    @staticmethod
    def error_results(batch: Sequence[ExtendedSequence], kind: str) -> dict[str, ExecutionResult]:
        return {
            s.seq_id: ExecutionResult(s.seq_id, list(s.row_ids), normal_termination=False, error=kind)
            for s in batch
        }

    def _environment(self) -> dict[str, str]:
        return subprocess_env(self.classpath)


def subprocess_env(classpath: Sequence[str] = ()) -> dict[str, str]:
    """Environment for a child interpreter that can import ``classpath`` and ctdforge."""
    env = dict(os.environ)
    paths = [str(Path(p).resolve()) for p in classpath] + [PACKAGE_ROOT]
    existing = env.get("PYTHONPATH")
    if existing:
        paths.append(existing)
    env["PYTHONPATH"] = os.pathsep.join(paths)
    return env
