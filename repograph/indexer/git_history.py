"""Git history access and churn/ownership enrichment of file nodes."""

import logging
import subprocess
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..graph_db.schema import GraphNode, NodeType

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 30
FIELD_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class CommitInfo:
    """One commit touching a file."""

    author: str
    email: str
    date: str  # ISO 8601 with offset


class GitHistoryProvider(ABC):
    """Narrow interface over version-control history."""

    @abstractmethod
    def is_available(self) -> bool:
        """True when the root is inside a repository and history can be read."""
        pass

    @abstractmethod
    def commits_touching(self, file_path: str, max_commits: int) -> List[CommitInfo]:
        """Commits that touched a root-relative file, newest first."""
        pass

    @abstractmethod
    def head_commit(self) -> Optional[str]:
        """Hash of the current HEAD commit, if any."""
        pass


class SubprocessGitHistoryProvider(GitHistoryProvider):
    """Reads history by running the git executable."""

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir)
        self._available: Optional[bool] = None

    def _run(self, args: Sequence[str]) -> Optional[str]:
        cmd = ["git", "-C", str(self.root_dir), *args]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=GIT_TIMEOUT_SECONDS)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug(f"git {' '.join(args)} failed: {e}")
            return None
        if proc.returncode != 0:
            logger.debug(f"git {' '.join(args)} exited {proc.returncode}: {proc.stderr.strip()}")
            return None
        return proc.stdout

    def is_available(self) -> bool:
        if self._available is None:
            output = self._run(["rev-parse", "--is-inside-work-tree"])
            self._available = output is not None and output.strip() == "true"
        return self._available

    def commits_touching(self, file_path: str, max_commits: int) -> List[CommitInfo]:
        output = self._run(
            [
                "log",
                f"--max-count={max_commits}",
                f"--format=%an{FIELD_SEPARATOR}%ae{FIELD_SEPARATOR}%aI",
                "--",
                file_path,
            ]
        )
        if not output:
            return []

        commits = []
        for line in output.splitlines():
            parts = line.split(FIELD_SEPARATOR)
            if len(parts) != 3:
                continue
            author, email, date = parts
            commits.append(CommitInfo(author=author, email=email, date=date))
        return commits

    def head_commit(self) -> Optional[str]:
        output = self._run(["rev-parse", "HEAD"])
        return output.strip() if output else None


class StaticGitHistoryProvider(GitHistoryProvider):
    """In-memory history, for tests and for callers that already mined git."""

    def __init__(self, history: Mapping[str, List[CommitInfo]], head: Optional[str] = None, available: bool = True):
        self.history = dict(history)
        self.head = head
        self.available = available

    def is_available(self) -> bool:
        return self.available

    def commits_touching(self, file_path: str, max_commits: int) -> List[CommitInfo]:
        return list(self.history.get(file_path, []))[:max_commits]

    def head_commit(self) -> Optional[str]:
        return self.head


def _enrich_node(node: GraphNode, provider: GitHistoryProvider, max_commits: int) -> GraphNode:
    try:
        commits = provider.commits_touching(node.file_path, max_commits)
    except Exception as e:
        logger.warning(f"Could not read git history for {node.file_path}: {e}")
        return node
    if not commits:
        return node

    contributors: Dict[str, str] = {}
    for commit in commits:
        # Same person under several names is deduplicated by email
        key = (commit.email or commit.author).lower()
        contributors.setdefault(key, commit.author)

    return replace(
        node,
        last_modified=max(commits, key=lambda c: datetime.fromisoformat(c.date)).date,
        modification_count=len(commits),
        contributors=list(contributors.values()),
    )


def enrich_with_git_history(
    nodes: Dict[str, GraphNode],
    provider: GitHistoryProvider,
    max_commits: int = 50,
    batch_size: int = 10,
) -> Dict[str, GraphNode]:
    """Attach last_modified, modification_count and contributors to file nodes.

    Args:
        nodes: Graph nodes keyed by id
        provider: History source
        max_commits: Upper bound on commits read per file
        batch_size: Number of files queried concurrently

    Returns:
        New node mapping with enriched file nodes (same order); the input is unchanged
    """
    file_nodes = [node for node in nodes.values() if node.type == NodeType.FILE]
    if not file_nodes:
        return dict(nodes)

    with ThreadPoolExecutor(max_workers=max(1, batch_size)) as executor:
        enriched = list(executor.map(lambda n: _enrich_node(n, provider, max_commits), file_nodes))

    updated = {node.id: node for node in enriched}
    with_history = sum(1 for node in enriched if node.modification_count)
    logger.info(f"Git history attached to {with_history}/{len(file_nodes)} files")
    return {node_id: updated.get(node_id, node) for node_id, node in nodes.items()}
