#!/usr/bin/env python3
"""
Run Context — Reproducibility infrastructure for a scoring run.

Provides:
  - run_id generation (UUID4)
  - Structured JSON logging (file) plus a human-readable console stream
  - Config hashing and snapshot saving
  - Run metadata recording (timestamps, versions, parameters)
  - Scored-universe artifact saving

Usage:
    ctx = RunContext()                 # console logging only
    ctx = RunContext(runs_dir="runs")  # also writes runs/{run_id}/run.log
    scored = score_universe(df, cfg, ctx=ctx)
    ctx.save_artifact("scored", scored)
    ctx.save_metadata({"config_hash": ctx.config_hash(cfg)})
"""

import hashlib
import importlib.metadata
import json
import logging
import platform
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import yaml

from schemas import ScoringConfig

LOG_FIELDS = ("ticker", "metric", "value", "sector",
              "phase", "step", "count", "run_id")


class _JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "module": record.module,
            "func": record.funcName,
            "msg": record.getMessage(),
        }
        # Merge any extra fields (ticker, metric, sector, etc.)
        for key in LOG_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, default=str)


class RunContext:
    """Holds one scoring run's id, logger and on-disk artifacts.

    Without ``runs_dir`` nothing is written to disk and the save_* methods
    raise ``RuntimeError``.
    """

    def __init__(self, run_id: str | None = None, runs_dir: str | Path | None = None,
                 console: bool = True):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.start_time = datetime.now()
        self.run_dir = Path(runs_dir) / self.run_id if runs_dir is not None else None

        self.log = logging.getLogger(f"scoring.{self.run_id}")
        self.log.setLevel(logging.DEBUG)
        self.log.propagate = False

        # Remove existing handlers to avoid duplicates on re-init
        self.log.handlers.clear()

        if self.run_dir is not None:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(self.run_dir / "run.log"), encoding="utf-8")
            fh.setFormatter(_JSONFormatter())
            self.log.addHandler(fh)

        if console:
            ch = logging.StreamHandler(sys.stdout)
            ch.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
            ch.setLevel(logging.INFO)
            self.log.addHandler(ch)

        self.log.info("Run started", extra={"run_id": self.run_id})

    def _require_dir(self) -> Path:
        if self.run_dir is None:
            raise RuntimeError("RunContext was created without runs_dir")
        return self.run_dir

    def close(self) -> None:
        """Flush and detach all handlers (releases the log file)."""
        for h in list(self.log.handlers):
            h.close()
            self.log.removeHandler(h)

    @staticmethod
    def config_hash(cfg: ScoringConfig) -> str:
        """Deterministic short hash of every scoring parameter.

        Two runs with equal hashes scored with identical weights and model
        constants.
        """
        raw = json.dumps(cfg.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(raw.encode()).hexdigest()[:12]

    def save_config(self, cfg: ScoringConfig) -> Path:
        """Save a snapshot of the validated config used for this run."""
        path = self._require_dir() / "config.yaml"
        with open(path, "w") as f:
            yaml.safe_dump(cfg.model_dump(mode="json"), f,
                           default_flow_style=False, sort_keys=False)
        self.log.info("Config snapshot saved", extra={"phase": "init"})
        return path

    def save_artifact(self, name: str, df: pd.DataFrame) -> Path:
        """Save an intermediate DataFrame as CSV."""
        path = self._require_dir() / f"{name}.csv"
        df.to_csv(path, index=False)
        self.log.info(f"Artifact saved: {name} ({len(df)} rows)",
                      extra={"phase": "artifact", "step": name, "count": len(df)})
        return path

    def run_metadata(self, extra: dict | None = None) -> dict:
        """Run metadata as a dict: timing, interpreter, package versions."""
        end_time = datetime.now()
        meta = {
            "run_id": self.run_id,
            "start_time": self.start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "elapsed_seconds": round((end_time - self.start_time).total_seconds(), 1),
            "python_version": sys.version,
            "platform": platform.platform(),
            "packages": _get_package_versions(),
        }
        if extra:
            meta.update(extra)
        self.log.info(f"Run finished in {meta['elapsed_seconds']}s",
                      extra={"run_id": self.run_id, "phase": "end"})
        return meta

    def save_metadata(self, extra: dict | None = None) -> Path:
        """Save run metadata (call at end of a run)."""
        meta = self.run_metadata(extra)
        path = self._require_dir() / "meta.json"
        with open(path, "w") as f:
            json.dump(meta, f, indent=2, default=str)
        self.log.info("Run metadata saved", extra={"run_id": self.run_id})
        return path


def _get_package_versions() -> dict:
    """Get versions of key dependencies."""
    versions = {}
    for pkg in ["numpy", "pandas", "pydantic", "pyyaml"]:
        try:
            versions[pkg] = importlib.metadata.version(pkg)
        except importlib.metadata.PackageNotFoundError:
            versions[pkg] = "unknown"
    return versions
