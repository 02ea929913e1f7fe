"""
Git Manager: common repository chores on top of the git CLI.
"""

import logging
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError, ToolError, UsageError
from opskit.core.runner import ToolResult, require_tool, run_tool
from opskit.core.utils import file_timestamp

logger = logging.getLogger(__name__)

PROTECTED_BRANCHES = {"main", "master"}

README_TEMPLATE = """\
# {name}

This repository was created with opskit.

## Getting Started

Add your project description here.

## Usage

Add usage instructions here.

## Contributing

Add contribution guidelines here.
"""

GITIGNORE_TEMPLATE = """\
# Common ignore patterns
*.log
*.tmp
.DS_Store
node_modules/
.env
*.swp
*.swo
*~
"""

STATUS_LABELS = {
    "M ": "Modified",
    "MM": "Modified",
    " M": "Modified (unstaged)",
    "A ": "Added",
    "AM": "Added",
    "D ": "Deleted",
    " D": "Deleted (unstaged)",
    "R ": "Renamed",
    "RM": "Renamed",
    "??": "Untracked",
}


class StatusEntry(BaseModel):
    label: str
    path: str


class RepoStatus(BaseModel):
    entries: List[StatusEntry] = Field(default_factory=list)
    branch: str = ""
    remote_branches: List[str] = Field(default_factory=list)
    recent_commits: List[str] = Field(default_factory=list)
    remote_url: Optional[str] = None
    commit_count: int = 0
    contributors: int = 0


def parse_porcelain(output: str) -> List[StatusEntry]:
    """Classify ``git status --porcelain`` lines; unknown codes are kept raw."""
    entries = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        entries.append(StatusEntry(label=STATUS_LABELS.get(code, code.strip() or code), path=path))
    return entries


def merged_branches_to_delete(branch_output: str) -> List[str]:
    """
    Branches from ``git branch --merged`` that cleanup may delete: everything
    except the current branch and main/master.
    """
    names = []
    for line in branch_output.splitlines():
        if not line.strip() or line.startswith("*") or line.startswith("+"):
            continue
        name = line.strip()
        if name in PROTECTED_BRANCHES:
            continue
        names.append(name)
    return names


class GitManager:
    """Runs git in ``repo_dir`` (the current directory by default)."""

    def __init__(self, repo_dir: Optional[Path] = None):
        self.repo_dir = Path(repo_dir) if repo_dir else Path.cwd()
        require_tool("git", "Please install Git first")

    def _git(self, *args: str, check: bool = True, cwd: Optional[Path] = None) -> ToolResult:
        return run_tool(["git", *args], cwd=cwd or self.repo_dir, check=check)

    def ensure_repo(self) -> None:
        if not self._git("rev-parse", "--git-dir", check=False).ok:
            raise PreconditionError("Not in a Git repository. Use 'opskit git init' or navigate to a Git repository")

    def current_branch(self) -> str:
        return self._git("branch", "--show-current").stdout.strip()

    def status(self) -> RepoStatus:
        self.ensure_repo()
        status = RepoStatus(entries=parse_porcelain(self._git("status", "--porcelain").stdout))
        status.branch = self.current_branch()
        remotes = self._git("branch", "-r", check=False)
        status.remote_branches = [line.strip() for line in remotes.stdout.splitlines() if line.strip()][:5]
        commits = self._git("log", "--oneline", "-5", check=False)
        status.recent_commits = commits.stdout.splitlines() if commits.ok else []
        remote = self._git("remote", "get-url", "origin", check=False)
        status.remote_url = remote.stdout.strip() if remote.ok else None
        count = self._git("rev-list", "--count", "HEAD", check=False)
        status.commit_count = int(count.stdout.strip()) if count.ok and count.stdout.strip().isdigit() else 0
        shortlog = self._git("shortlog", "-sn", "HEAD", check=False)
        status.contributors = len(shortlog.stdout.splitlines()) if shortlog.ok else 0
        return status

    def init_repo(self, name: str) -> Path:
        """Create ``name`` with a README, a .gitignore and an initial commit."""
        target = self.repo_dir / name
        if target.exists():
            raise PreconditionError(f"Directory '{name}' already exists")
        target.mkdir(parents=True)
        self._git("init", cwd=target)
        (target / "README.md").write_text(README_TEMPLATE.format(name=name), encoding="utf-8")
        (target / ".gitignore").write_text(GITIGNORE_TEMPLATE, encoding="utf-8")
        self._git("add", "README.md", ".gitignore", cwd=target)
        self._git("commit", "-m", "Initial commit: Add README and .gitignore", cwd=target)
        return target

    def clone(self, url: str, directory: Optional[str] = None) -> Path:
        args = ["clone", url] + ([directory] if directory else [])
        self._git(*args)
        name = directory or Path(url.rstrip("/")).name
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return self.repo_dir / name

    def add(self, files: Sequence[str] = ()) -> List[str]:
        """Stage ``files`` (everything when empty); returns the staged names."""
        self.ensure_repo()
        self._git("add", *(files or ["."]))
        return self._git("diff", "--cached", "--name-only").stdout.splitlines()

    def commit(self, message: str) -> str:
        if not message.strip():
            raise UsageError("Commit message required")
        self.ensure_repo()
        if self._git("diff", "--cached", "--quiet", check=False).ok:
            raise PreconditionError("No staged changes to commit. Stage files first with: opskit git add [files]")
        self._git("commit", "-m", message)
        return self._git("log", "--oneline", "-1").stdout.strip()

    def _remote_and_branch(self, remote: Optional[str], branch: Optional[str]) -> Tuple[str, str]:
        return remote or "origin", branch or self.current_branch()

    def push(self, remote: Optional[str] = None, branch: Optional[str] = None) -> Tuple[str, str]:
        self.ensure_repo()
        remote, branch = self._remote_and_branch(remote, branch)
        result = self._git("push", remote, branch, check=False)
        if not result.ok:
            raise ToolError(
                f"Push to {remote}/{branch} failed. Set up a remote with 'git remote add origin <url>' "
                f"or an upstream with 'git push -u origin {branch}'",
                returncode=result.returncode,
                output=result.output,
            )
        return remote, branch

    def pull(self, remote: Optional[str] = None, branch: Optional[str] = None) -> Tuple[str, str]:
        self.ensure_repo()
        remote, branch = self._remote_and_branch(remote, branch)
        result = self._git("pull", remote, branch, check=False)
        if not result.ok:
            raise ToolError(
                f"Pull from {remote}/{branch} failed. Check remote configuration.",
                returncode=result.returncode,
                output=result.output,
            )
        return remote, branch

    def branches(self) -> str:
        self.ensure_repo()
        return self._git("branch", "-a").stdout

    def create_branch(self, name: str) -> None:
        self.ensure_repo()
        self._git("checkout", "-b", name)

    def checkout(self, branch: str) -> None:
        self.ensure_repo()
        self._git("checkout", branch)

    def merge(self, branch: str) -> str:
        """Merge ``branch`` into the current branch; returns the current branch."""
        self.ensure_repo()
        current = self.current_branch()
        result = self._git("merge", branch, check=False)
        if not result.ok:
            raise ToolError(
                f"Merge of '{branch}' into '{current}' failed. Resolve conflicts and commit.",
                returncode=result.returncode,
                output=result.output,
            )
        return current

    def log(self, count: int = 10) -> Tuple[str, str]:
        """Graph of the last ``count`` commits and ``show --stat`` of HEAD."""
        self.ensure_repo()
        graph = self._git("log", "--oneline", "--graph", "--decorate", "-n", str(count)).stdout
        latest = self._git("show", "--stat", "HEAD", check=False).stdout
        return graph, latest

    def diff(self, file: Optional[str] = None) -> Dict[str, str]:
        self.ensure_repo()
        if file:
            return {f"Differences in file: {file}": self._git("diff", "--", file).stdout}
        return {
            "All differences": self._git("diff").stdout,
            "Staged differences": self._git("diff", "--cached").stdout,
        }

    def backup(self) -> Tuple[Path, Path]:
        """
        Write ``<repo>_backup_<ts>.tar.gz`` (work tree without .git) and
        ``<repo>_backup_<ts>.bundle`` (full history) next to the repository.
        """
        self.ensure_repo()
        toplevel = Path(self._git("rev-parse", "--show-toplevel").stdout.strip())
        backup_name = f"{toplevel.name}_backup_{file_timestamp()}"
        archive = toplevel.parent / f"{backup_name}.tar.gz"
        bundle = toplevel.parent / f"{backup_name}.bundle"

        def _skip_git(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            parts = Path(info.name).parts
            return None if ".git" in parts else info

        with tarfile.open(archive, "w:gz") as tar:
            tar.add(toplevel, arcname=toplevel.name, filter=_skip_git)
        self._git("bundle", "create", str(bundle), "--all", cwd=toplevel)
        return archive, bundle

    def cleanup(self) -> List[str]:
        """Remove untracked files, gc, and delete merged branches; returns deleted branches."""
        self.ensure_repo()
        self._git("clean", "-fd")
        self._git("gc", "--prune=now")
        deleted = []
        for branch in merged_branches_to_delete(self._git("branch", "--merged").stdout):
            if self._git("branch", "-d", branch, check=False).ok:
                deleted.append(branch)
            else:
                logger.warning("Could not delete branch %s", branch)
        return deleted
