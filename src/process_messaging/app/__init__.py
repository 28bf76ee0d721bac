from process_messaging.app.cli import CommandRunner, RunReport, main, run

__all__ = ["CommandRunner", "RunReport", "main", "run"]
