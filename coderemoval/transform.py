"""Batch transform: strip removal regions from files during a build.

``transform`` is the per-file entry point. Hosts decide which files exist
and how text is read and written; ``run_batch`` drives any host, isolating
failures so one bad file never aborts the rest.
"""

import asyncio
import dataclasses
import logging
import shutil
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from .config import RemoveCodeOptions, parse_options
from .errors import RemovalError
from .gate import EnvironmentContext, should_strip
from .scanner import MarkerIssue
from .stripper import strip

logger = logging.getLogger(__name__)

LOG_PREFIX = "[coderemoval]"


def read_source(path: Path) -> str:
    """Read a file keeping its line endings."""
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


def write_source(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(text)


@dataclass
class TransformResult:
    """Rewritten text for one file."""

    path: str
    text: str
    removed: int
    issues: list[MarkerIssue] = field(default_factory=list)


def is_eligible(file_path: str, options: RemoveCodeOptions) -> bool:
    """Whether a file passes the include (suffix) and exclude (substring) filters."""
    path = str(file_path)
    if not any(path.endswith(suffix) for suffix in options.include):
        return False
    return not any(pattern in path for pattern in options.exclude)


def transform(
    file_path: str,
    source_text: str,
    options: "RemoveCodeOptions | dict | None" = None,
    context: Optional[EnvironmentContext] = None,
) -> Optional[TransformResult]:
    """Strip one file's removal regions.

    Returns None ("unchanged") when the file is filtered out, the gate is
    closed, or nothing was removed; the host then keeps the original text.

    Args:
        file_path: Path or module id of the file
        source_text: Its current text
        options: Batch options, validated here
        context: Ambient mode and test signals; read from ``os.environ`` per
            call when omitted. Its environments are replaced by
            ``options.environments``, and ``options.is_target_environment``
            takes precedence over its predicate.

    Raises:
        ConfigurationError: Invalid options
        UnbalancedMarkerError: Markers do not pair up and ``strict`` is set
    """
    options = parse_options(options)
    debug = options.debug

    def log(message: str, *args) -> None:
        if debug:
            logger.info(f"{LOG_PREFIX} {message}", *args)

    path = str(file_path)
    if not is_eligible(path, options):
        if any(pattern in path for pattern in options.exclude):
            log("Excluding file: %s", path)
        return None

    if context is None:
        context = EnvironmentContext.from_environ()
    # The context contributes the ambient mode and test signals only; the
    # active environments and the predicate always come from the options.
    context = dataclasses.replace(
        context,
        active_environments=frozenset(options.environments),
        custom_predicate=options.is_target_environment or context.custom_predicate,
    )

    if not should_strip(context):
        log("Skipping code removal for environment (mode=%s, test=%s)", context.mode, context.test_mode)
        return None

    # Families are gated on the ambient signals against their own environments;
    # a custom predicate only answers for the default family.
    ambient = dataclasses.replace(context, custom_predicate=None)
    families = [family.markers for family in options.families if should_strip(ambient, family.environments)]

    log("Processing file: %s", path)
    result = strip(source_text, options.patterns, families, strict=options.strict)
    if not result.changed:
        return None

    log("Removed %d region(s) from %s", result.removed, path)
    return TransformResult(path=path, text=result.text, removed=result.removed, issues=result.issues)


class Host(Protocol):
    """Where a batch gets its files from and puts its output."""

    def eligible_files(self, options: RemoveCodeOptions) -> Iterator[str]: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, text: str) -> None: ...

    def keep_original(self, path: str) -> None: ...


class MemoryHost:
    """In-memory files, keyed by path."""

    def __init__(self, files: Mapping[str, str]) -> None:
        self.files = dict(files)
        self.written: dict[str, str] = {}

    def eligible_files(self, options: RemoveCodeOptions) -> Iterator[str]:
        for path in sorted(self.files):
            if is_eligible(path, options):
                yield path

    def read_text(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write_text(self, path: str, text: str) -> None:
        self.written[path] = text

    def keep_original(self, path: str) -> None:
        self.written[path] = self.files[path]

    def output(self, path: str) -> str:
        """Text a build would see for a path."""
        return self.written.get(path, self.files[path])


class FileSystemHost:
    """Files under one or more roots on disk.

    Output goes back in place, or mirrored under ``out_dir`` with unchanged
    files copied byte for byte. With neither ``write`` nor ``out_dir`` the
    host is read-only (dry run).
    """

    def __init__(self, roots: list[Path], out_dir: Optional[Path] = None, write: bool = False) -> None:
        self.roots = [Path(root) for root in roots]
        self.out_dir = Path(out_dir) if out_dir is not None else None
        self.write = write

    def eligible_files(self, options: RemoveCodeOptions) -> Iterator[str]:
        for root in self.roots:
            if root.is_file():
                candidates = [root]
            elif root.is_dir():
                candidates = sorted(p for p in root.rglob("*") if p.is_file())
            else:
                raise FileNotFoundError(f"Path not found: {root}")
            for path in candidates:
                if is_eligible(str(path), options):
                    yield str(path)

    def read_text(self, path: str) -> str:
        return read_source(Path(path))

    def _destination(self, path: str) -> Optional[Path]:
        source = Path(path)
        if self.out_dir is None:
            return source if self.write else None
        for root in self.roots:
            base = root.parent if root.is_file() else root
            try:
                return self.out_dir / source.relative_to(base)
            except ValueError:
                continue
        return self.out_dir / source.name

    def write_text(self, path: str, text: str) -> None:
        destination = self._destination(path)
        if destination is None:
            return
        destination.parent.mkdir(parents=True, exist_ok=True)
        write_source(destination, text)

    def keep_original(self, path: str) -> None:
        if self.out_dir is None:
            return
        destination = self._destination(path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, destination)


@dataclass
class FileReport:
    """What happened to one file."""

    path: str
    changed: bool = False
    removed: int = 0
    issues: list[MarkerIssue] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BatchReport:
    """Outcome of a batch run."""

    files: list[FileReport] = field(default_factory=list)

    @property
    def changed(self) -> list[FileReport]:
        return [f for f in self.files if f.changed]

    @property
    def failed(self) -> list[FileReport]:
        return [f for f in self.files if f.error is not None]

    @property
    def removed(self) -> int:
        return sum(f.removed for f in self.files)


def process_file(
    host: Host, path: str, options: RemoveCodeOptions, context: Optional[EnvironmentContext] = None
) -> FileReport:
    """Transform one file through a host, capturing its failure."""
    try:
        source = host.read_text(path)
        result = transform(path, source, options, context)
        if result is None:
            host.keep_original(path)
            return FileReport(path=path)
        host.write_text(path, result.text)
        return FileReport(path=path, changed=True, removed=result.removed, issues=result.issues)
    except (RemovalError, OSError, UnicodeDecodeError) as e:
        logger.error("%s Failed to process %s: %s", LOG_PREFIX, path, e)
        return FileReport(path=path, error=str(e))


async def _run_parallel(
    host: Host, paths: list[str], options: RemoveCodeOptions, context: Optional[EnvironmentContext], jobs: int
) -> list[FileReport]:
    semaphore = asyncio.Semaphore(jobs)

    async def run_one(path: str) -> FileReport:
        async with semaphore:
            return await asyncio.to_thread(process_file, host, path, options, context)

    return list(await asyncio.gather(*(run_one(path) for path in paths)))


def run_batch(
    host: Host,
    options: "RemoveCodeOptions | dict | None" = None,
    context: Optional[EnvironmentContext] = None,
    jobs: int = 1,
) -> BatchReport:
    """Transform every eligible file a host offers.

    The environment gate is evaluated per file. Files are independent, so
    with ``jobs > 1`` they are processed concurrently.
    """
    options = parse_options(options)
    paths = list(host.eligible_files(options))
    logger.debug("%s %d eligible file(s)", LOG_PREFIX, len(paths))

    if jobs > 1 and len(paths) > 1:
        reports = asyncio.run(_run_parallel(host, paths, options, context, jobs))
    else:
        reports = [process_file(host, path, options, context) for path in paths]

    return BatchReport(files=reports)
