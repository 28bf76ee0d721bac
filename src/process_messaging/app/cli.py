from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from process_messaging.config.loader import load_app_config, parse_app_config
from process_messaging.config.models import AppConfig, CommandSpec
from process_messaging.errors import ConfigurationError, MessagingError
from process_messaging.messaging.codec import codec_by_name
from process_messaging.messaging.envelope import ChildFailure
from process_messaging.observability.adapters.logging import build_log_sink, close_log_sink
from process_messaging.pool.scheduler import ProcessPool
from process_messaging.process.handle import ProcessHandle
from process_messaging.process.subprocess_handle import MessagingProcess


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="process-messaging")
    parser.add_argument("--config", required=True)
    parser.add_argument("--concurrency", type=int)
    parser.add_argument("--poll-interval", type=float)
    parser.add_argument("--codec", choices=["pickle", "json"])
    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    # Flags override YAML values; the result is validated again.
    raw = config.model_dump()
    if args.concurrency is not None:
        raw["pool"]["concurrency"] = args.concurrency
    if args.poll_interval is not None:
        raw["pool"]["poll_interval"] = args.poll_interval
    if args.codec is not None:
        raw["codec"] = args.codec
    return parse_app_config(raw)


@dataclass(slots=True)
class RunReport:
    # Outcome of one CLI run.
    started: int = 0
    restarts: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


class CommandRunner:
    # Wires configured commands into a ProcessPool and collects their outcome.
    def __init__(self, config: AppConfig, *, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self.config = config
        self.report = RunReport()
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._specs: dict[ProcessHandle, CommandSpec] = {}
        self._restarts: dict[str, int] = {}
        self._log_sink = build_log_sink(config.logging.model_dump())
        self.pool = ProcessPool(
            self._processes,
            concurrency=config.pool.concurrency,
            poll_interval=config.pool.poll_interval,
            log_sink=self._log_sink,
        )
        self.pool.on_process_started(self._started)
        self.pool.on_process_finished(self._finished)

    def run(self) -> RunReport:
        try:
            self.pool.start()
            try:
                self.pool.wait()
            except KeyboardInterrupt:
                self.pool.stop(self.config.pool.stop.timeout, self.config.pool.stop.signal)
                self.pool.wait()
                self.report.failures.append("interrupted")
        finally:
            close_log_sink(self._log_sink)
        return self.report

    def _processes(self) -> Iterator[MessagingProcess]:
        for spec in self.config.commands:
            base = spec.tag or Path(spec.argv[0]).name
            for replica in range(spec.replicas):
                tag = base if spec.replicas == 1 else f"{base}#{replica}"
                process = MessagingProcess(
                    spec.argv,
                    cwd=spec.cwd,
                    env=spec.env,
                    tag=tag,
                    codec=codec_by_name(self.config.codec),
                )
                self._bind(process, spec)
                yield process

    def _bind(self, process: MessagingProcess, spec: CommandSpec) -> None:
        tag = process.tag
        process.on_echo(lambda payload: self._echo(tag, payload))
        process.on_message(lambda payload: self._message(tag, payload))
        process.on_exception(lambda payload: self._exception(tag, payload))
        self._specs[process] = spec

    def _started(self, handle: ProcessHandle) -> None:
        self.report.started += 1

    def _finished(self, handle: ProcessHandle) -> ProcessHandle | None:
        spec = self._specs.pop(handle, None)
        exit_code = getattr(handle, "exit_code", 0)
        if exit_code == 0:
            return None
        tag = handle.tag or "process"
        used = self._restarts.get(tag, 0)
        if spec is not None and spec.restart_on_failure and used < spec.max_restarts:
            self._restarts[tag] = used + 1
            self.report.restarts += 1
            replacement = handle.restart()
            self._specs[replacement] = spec
            return replacement
        self.report.failures.append(f"{tag} exited with status {exit_code}")
        return None

    def _echo(self, tag: str | None, payload: object) -> None:
        self._stdout.write(f"| {tag} | {payload}")
        self._stdout.flush()

    def _message(self, tag: str | None, payload: object) -> None:
        self._stdout.write(json.dumps({"tag": tag, "message": payload}, default=repr) + "\n")
        self._stdout.flush()

    def _exception(self, tag: str | None, payload: object) -> None:
        failure = ChildFailure.from_payload(payload, tag=tag)
        self._stderr.write(f"| {tag} | {failure.description}\n")
        self._stderr.flush()


def run(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None, stderr: TextIO | None = None) -> int:
    args = parse_args(list(argv) if argv is not None else sys.argv[1:])
    err = stderr or sys.stderr
    try:
        config = apply_cli_overrides(load_app_config(Path(args.config)), args)
        report = CommandRunner(config, stdout=stdout, stderr=stderr).run()
    except (ConfigurationError, MessagingError, OSError) as exc:
        err.write(f"process-messaging: {exc}\n")
        return 2
    for failure in report.failures:
        err.write(f"process-messaging: {failure}\n")
    return report.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    return run(argv)
