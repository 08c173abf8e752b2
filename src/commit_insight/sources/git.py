"""Read commits and diffs from a local clone via the git CLI."""

import subprocess
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from ..exceptions import ErrorCode, UpstreamFetchError
from ..logging_config import get_logger
from ..models import CommitRecord

logger = get_logger(__name__)

# Fields are separated by US (0x1f), records by RS (0x1e); bodies may hold newlines.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%P%x1f%at%x1f%an%x1f%B%x1e"


class GitCommitSource:
    """Commit source backed by ``git log`` / ``git show``.

    ``repo`` arguments are paths to a working tree; the repository name
    recorded on each commit is the directory name.
    """

    def __init__(self, max_commits: int = 500, timeout: int = 30):
        self.max_commits = max_commits
        self.timeout = timeout

    def _run(self, repo: str, args: list[str], code: ErrorCode) -> str:
        cmd = ["git", "-C", str(Path(repo).resolve()), *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise UpstreamFetchError(
                message="git executable not found",
                code=code,
                recoverable=False,
                recovery_hint="Install git and make sure it is on PATH",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise UpstreamFetchError(
                message=f"git {args[0]} timed out after {self.timeout}s",
                code=ErrorCode.CI302,
                context={"repo": repo},
            ) from e
        if result.returncode != 0:
            raise UpstreamFetchError(
                message=f"git {args[0]} failed: {result.stderr.strip()}",
                code=code,
                context={"repo": repo, "returncode": result.returncode},
            )
        return result.stdout

    def list_commits(
        self,
        repo: str,
        since: Optional[date] = None,
        until: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[CommitRecord]:
        """Commits newest first, optionally bounded by author date."""
        args = ["log", f"--format={_LOG_FORMAT}", f"-n{limit or self.max_commits}"]
        if since is not None:
            args.append(f"--since={since.isoformat()} 00:00:00")
        if until is not None:
            args.append(f"--until={until.isoformat()} 23:59:59")
        raw = self._run(repo, args, ErrorCode.CI300)
        commits = self._parse_log(raw, Path(repo).resolve().name)
        logger.debug("Read %d commits from %s", len(commits), repo)
        return commits

    def get_diff(self, repo: str, sha: str) -> str:
        return self._run(
            repo, ["show", "--format=", "--patch", "--no-color", sha], ErrorCode.CI301
        )

    def get_staged_diff(self, repo: str) -> str:
        """Diff of the index against HEAD, i.e. what the next commit would contain."""
        return self._run(repo, ["diff", "--cached", "--no-color"], ErrorCode.CI301)

    @staticmethod
    def _parse_log(raw: str, repository: str) -> list[CommitRecord]:
        commits = []
        for record in raw.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            parts = record.split(_FIELD_SEP, 4)
            if len(parts) != 5:
                logger.debug("Skipping malformed git log record: %r", record[:80])
                continue
            sha, parents, timestamp, author, body = parts
            try:
                when = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
            except ValueError:
                continue
            commits.append(
                CommitRecord(
                    sha=sha.strip(),
                    message=body.strip(),
                    author=author,
                    date=when,
                    repository=repository,
                    parents=tuple(parents.split()),
                )
            )
        return commits
