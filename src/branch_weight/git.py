from __future__ import annotations

import subprocess
import threading
from collections import Counter
from pathlib import Path
from typing import Iterable, Iterator

from .errors import ObjectLookupError, ResolutionError, SourceUnavailableError, TraversalError
from .models import Branch, ObjectInfo

BATCH_CHECK_FORMAT = "%(objectname) %(objecttype) %(objectsize:disk)"
DEFAULT_BRANCH_CANDIDATES = ("refs/heads/master", "refs/heads/main")

_UNRESOLVED_MARKERS = ("bad object", "bad revision", "unknown revision", "ambiguous argument", "not a valid object")


def run_git(args: list[str], cwd: Path, timeout_s: int = 300, input_text: str | None = None) -> tuple[int, str, str]:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except FileNotFoundError as e:
        raise SourceUnavailableError("git executable not found on PATH") from e
    return proc.returncode, proc.stdout, proc.stderr


def strip_ref_prefix(refname: str) -> str:
    for prefix in ("refs/heads/", "refs/remotes/"):
        if refname.startswith(prefix):
            return refname[len(prefix) :]
    return refname


def parse_for_each_ref(out: str) -> list[Branch]:
    """Branches with short names; a short name two refs would share keeps its full refname."""
    refs: list[tuple[str, str]] = []
    for line in out.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        refname, oid = parts[0], parts[1]
        if refname.endswith("/HEAD"):
            continue
        refs.append((refname, oid))

    names = [strip_ref_prefix(refname) for refname, _ in refs]
    while True:
        counts = Counter(names)
        clashes = [i for i, name in enumerate(names) if counts[name] > 1 and name != refs[i][0]]
        if not clashes:
            break
        for i in clashes:
            names[i] = refs[i][0]
    return [Branch(name=name, tip=oid) for name, (_, oid) in zip(names, refs)]


def parse_batch_check_line(line: str) -> ObjectInfo | None:
    parts = line.split()
    if len(parts) == 2 and parts[1] == "missing":
        return ObjectInfo(oid=parts[0], type="missing")
    if len(parts) < 3:
        return None
    try:
        size = int(parts[2])
    except ValueError:
        return None
    return ObjectInfo(oid=parts[0], type=parts[1], size=size)


def parse_diff_tree_blobs(out: str) -> list[str]:
    blobs: list[str] = []
    for line in out.splitlines():
        if not line.startswith(":"):
            continue
        meta = line.split("\t", 1)[0]
        fields = meta[1:].split()
        # :<old mode> <new mode> <old oid> <new oid> <status>
        if len(fields) < 5 or fields[1] == "160000":
            continue
        blobs.append(fields[3])
    return blobs


class GitProcess:
    """A streaming git child whose stderr is drained on a side thread so it can never block stdout."""

    max_stderr_chars = 50_000

    def __init__(self, args: list[str], cwd: Path, *, stdin: bool = False) -> None:
        self.args = args
        try:
            self.proc = subprocess.Popen(
                ["git", *args],
                cwd=str(cwd),
                stdin=subprocess.PIPE if stdin else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise SourceUnavailableError("git executable not found on PATH") from e
        except OSError as e:
            raise SourceUnavailableError(f"failed to start git {args[0]}: {e}") from e
        self.killed = False
        self._stderr_chunks: list[str] = []
        self._stderr_chars = 0
        self._stderr_thread = threading.Thread(target=self._drain_stderr, daemon=True)
        self._stderr_thread.start()

    def _drain_stderr(self) -> None:
        if self.proc.stderr is None:
            return
        while True:
            chunk = self.proc.stderr.read(8192)
            if not chunk:
                return
            if self._stderr_chars >= self.max_stderr_chars:
                continue
            take = chunk[: self.max_stderr_chars - self._stderr_chars]
            self._stderr_chunks.append(take)
            self._stderr_chars += len(take)

    @property
    def stderr(self) -> str:
        return "".join(self._stderr_chunks)

    def kill(self) -> None:
        if self.proc.poll() is not None:
            return
        self.killed = True
        try:
            self.proc.kill()
        except OSError:
            pass

    def wait(self) -> int:
        code = self.proc.wait()
        self._stderr_thread.join()
        for f in (self.proc.stdin, self.proc.stdout, self.proc.stderr):
            if f is None:
                continue
            try:
                f.close()
            except (OSError, ValueError):
                pass
        return code


class ObjectStream:
    """Lazy `rev-list --objects` output: ids reachable from `tip` but not from `exclude`."""

    def __init__(self, source: GitObjectSource, tip: str, exclude: str) -> None:
        self._source = source
        self.tip = tip
        self.exclude = exclude
        self._git: GitProcess | None = None

    def __enter__(self) -> ObjectStream:
        self._git = self._source._spawn(["rev-list", "--objects", self.tip, "--not", self.exclude])
        return self

    def __iter__(self) -> Iterator[str]:
        assert self._git is not None and self._git.proc.stdout is not None
        for line in self._git.proc.stdout:
            oid = line.split(" ", 1)[0].strip()
            if oid:
                yield oid

    def __exit__(self, exc_type, exc, tb) -> None:
        git = self._git
        if git is None:
            return
        if exc_type is not None:
            git.kill()
        code = self._source._reap(git)
        if exc_type is not None or git.killed or code == 0:
            return
        stderr = git.stderr.strip()
        if any(m in stderr.lower() for m in _UNRESOLVED_MARKERS):
            raise ResolutionError(f"cannot resolve {self.tip}: {stderr[:500]}")
        raise TraversalError(f"git rev-list exited {code}: {stderr[:500]}")


class BatchCheck:
    """`cat-file --batch-check` fed from a side thread; yields one ObjectInfo per input id."""

    def __init__(self, source: GitObjectSource, oids: Iterable[str]) -> None:
        self._source = source
        self._oids = oids
        self._git: GitProcess | None = None
        self._feeder: threading.Thread | None = None

    def _feed(self) -> None:
        git = self._git
        assert git is not None and git.proc.stdin is not None
        stdin = git.proc.stdin
        try:
            for oid in self._oids:
                stdin.write(oid + "\n")
        except (BrokenPipeError, OSError, ValueError):
            pass
        finally:
            try:
                stdin.close()
            except (BrokenPipeError, OSError, ValueError):
                pass

    def __enter__(self) -> BatchCheck:
        self._git = self._source._spawn(["cat-file", f"--batch-check={BATCH_CHECK_FORMAT}"], stdin=True)
        self._feeder = threading.Thread(target=self._feed, daemon=True)
        self._feeder.start()
        return self

    def __iter__(self) -> Iterator[ObjectInfo]:
        assert self._git is not None and self._git.proc.stdout is not None
        for line in self._git.proc.stdout:
            info = parse_batch_check_line(line.strip())
            if info is not None:
                yield info

    def __exit__(self, exc_type, exc, tb) -> None:
        git = self._git
        if git is None:
            return
        if exc_type is not None:
            # The feeder may still be blocked on the upstream stream; the caller tears that down.
            git.kill()
            self._source._reap(git)
            return
        if self._feeder is not None:
            self._feeder.join()
        code = self._source._reap(git)
        if code != 0 and not git.killed:
            raise TraversalError(f"git cat-file exited {code}: {git.stderr.strip()[:500]}")


class GitObjectSource:
    def __init__(self, repo: Path, timeout_s: int = 300) -> None:
        self.repo = Path(repo)
        self.timeout_s = timeout_s
        self._live: set[GitProcess] = set()
        self._lock = threading.Lock()

    def _spawn(self, args: list[str], *, stdin: bool = False) -> GitProcess:
        git = GitProcess(args, self.repo, stdin=stdin)
        with self._lock:
            self._live.add(git)
        return git

    def _reap(self, git: GitProcess) -> int:
        code = git.wait()
        with self._lock:
            self._live.discard(git)
        return code

    def kill_all(self) -> None:
        with self._lock:
            live = list(self._live)
        for git in live:
            git.kill()

    def check_available(self) -> None:
        code, _, err = run_git(["--version"], cwd=self.repo, timeout_s=30)
        if code != 0:
            raise SourceUnavailableError(f"git --version exited {code}: {err.strip()[:500]}")

    def resolve(self, ref: str) -> str:
        code, out, _ = run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd=self.repo, timeout_s=self.timeout_s)
        oid = out.strip()
        if code != 0 or not oid:
            raise ResolutionError(f"cannot resolve {ref!r} to a commit")
        return oid

    def detect_default_branch(self) -> str:
        for name in DEFAULT_BRANCH_CANDIDATES:
            code, _, _ = run_git(["rev-parse", "--verify", "--quiet", name], cwd=self.repo)
            if code == 0:
                return name
        code, out, _ = run_git(["symbolic-ref", "--quiet", "refs/remotes/origin/HEAD"], cwd=self.repo)
        if code == 0 and out.strip():
            return out.strip()
        raise ResolutionError("Could not detect default branch (master/main). Use --branch to specify.")

    def list_unmerged_branches(self, default_branch: str, include_remotes: bool = True) -> list[Branch]:
        self.resolve(default_branch)
        args = ["for-each-ref", "--format=%(refname) %(objectname)", f"--no-merged={default_branch}", "refs/heads"]
        if include_remotes:
            args.append("refs/remotes")
        code, out, err = run_git(args, cwd=self.repo, timeout_s=self.timeout_s)
        if code != 0:
            raise TraversalError(f"git for-each-ref exited {code}: {err.strip()[:500]}")
        return parse_for_each_ref(out)

    def objects_exclusive_to(self, tip: str, exclude: str) -> ObjectStream:
        return ObjectStream(self, tip, exclude)

    def describe_objects(self, oids: Iterable[str]) -> BatchCheck:
        return BatchCheck(self, oids)

    def describe_object(self, oid: str) -> ObjectInfo:
        code, out, err = run_git(
            ["cat-file", f"--batch-check={BATCH_CHECK_FORMAT}"],
            cwd=self.repo,
            timeout_s=self.timeout_s,
            input_text=oid + "\n",
        )
        if code != 0:
            raise TraversalError(f"git cat-file exited {code}: {err.strip()[:500]}")
        info = parse_batch_check_line(out.strip())
        if info is None or info.missing:
            raise ObjectLookupError(f"object {oid} is not in the repository")
        return info

    def commit_graph(self, tip: str, exclude: str) -> list[tuple[str, list[str]]]:
        code, out, err = run_git(
            ["rev-list", "--parents", "--topo-order", "--reverse", tip, "--not", exclude],
            cwd=self.repo,
            timeout_s=self.timeout_s,
        )
        if code != 0:
            raise ResolutionError(f"cannot walk {tip}: {err.strip()[:500]}")
        graph: list[tuple[str, list[str]]] = []
        for line in out.splitlines():
            parts = line.split()
            if parts:
                graph.append((parts[0], parts[1:]))
        return graph

    def blobs_introduced_by(self, commit: str, parent: str | None) -> list[str]:
        args = ["diff-tree", "-r", "--no-commit-id", "--diff-filter=AMT"]
        args += [parent, commit] if parent else ["--root", commit]
        code, out, err = run_git(args, cwd=self.repo, timeout_s=self.timeout_s)
        if code != 0:
            raise TraversalError(f"git diff-tree {commit} exited {code}: {err.strip()[:500]}")
        return parse_diff_tree_blobs(out)
