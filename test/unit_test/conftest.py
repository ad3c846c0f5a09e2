"""Shared fixtures for unit tests.

Provides:
- a seed bare repository built once per session with the git CLI,
- a fresh in-memory SQLite database per test,
- a ``factory`` creating users, namespaces, projects (each with its own copy
  of the seed repository), memberships, merge requests and pipelines.

Seed repository layout
----------------------

``master``:
    README.md, files/ruby/popen.rb, files/ruby/regex.rb, .gitmodules and a
    ``gitlab-grack`` submodule entry.
``fix``:
    changes files/ruby/popen.rb (one real change, one whitespace-only change).
``feature``:
    adds files/ruby/feature.rb.
``add-submodule-version-bump``:
    moves the ``gitlab-grack`` submodule to another commit.
``remove-submodule``:
    removes the ``gitlab-grack`` submodule.
``conflict``:
    edits the first line of README.md, which master edits too.
"""

from __future__ import annotations

import itertools
import os
import shutil
import subprocess
from pathlib import Path
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel.pool import StaticPool

from githarbor.core.database.base import Base
from githarbor.core.database.entities import MergeRequest, Namespace, Pipeline, Project, ProjectMember, User
from githarbor.core.models.domain.enums import AccessLevel, PipelineStatus, Visibility

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test User",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test User",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_CONFIG_GLOBAL": os.devnull,
}

GRACK_SHA = "9a3c9c8b2e5f0d4a1b6c7e8f9a0b1c2d3e4f5a6b"
GRACK_BUMPED_SHA = "1f0e9d8c7b6a5f4e3d2c1b0a9f8e7d6c5b4a3f2e"

README = "Sample repo for testing\n\nUsed by the merge request tests.\n"
README_MASTER = "Sample repository for testing githarbor\n\nUsed by the merge request tests.\n"
README_CONFLICT = "Conflicting title\n\nUsed by the merge request tests.\n"

POPEN_RB = """require 'fileutils'
require 'open3'

module Popen
  extend self

  def popen(cmd, path=nil)
    unless cmd.is_a?(Array)
      raise "System commands must be given as an array of strings"
    end

    path ||= Dir.pwd
    vars = { "PWD" => path }
    options = { chdir: path }

    unless File.directory?(path)
      FileUtils.mkdir_p(path)
    end

    @cmd_output = ""
    @cmd_status = 0
    Open3.popen3(vars, *cmd, options) do |stdin, stdout, stderr, wait_thr|
      @cmd_output << stdout.read
      @cmd_output << stderr.read
      @cmd_status = wait_thr.value.exitstatus
    end

    return @cmd_output, @cmd_status
  end
end
"""

POPEN_RB_FIX = POPEN_RB.replace(
    'vars = { "PWD" => path }', 'vars = { "PWD" => path, "LANG" => "C" }'
).replace("    @cmd_status = 0\n", "      @cmd_status = 0\n")

REGEX_RB = """module Gitlab
  module Regex
    extend self

    def username_regex
      default_regex
    end

    def default_regex
      /\\A[.?]?[a-zA-Z0-9][a-zA-Z0-9_\\-\\.]*(?<!\\.git)\\z/
    end
  end
end
"""

FEATURE_RB = """class Feature
  def foo
    puts 'bar'
  end
end
"""

GITMODULES = """[submodule "gitlab-grack"]
\tpath = gitlab-grack
\turl = https://gitlab.com/gitlab-org/gitlab-grack.git
"""


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env={**os.environ, **GIT_ENV},
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def _write(root: Path, path: str, content: str) -> None:
    target = root / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)


def _commit(work: Path, message: str) -> None:
    git(work, "add", "-A")
    git(work, "commit", "-q", "-m", message)


def build_seed_repository(root: Path) -> Path:
    """Build the seed repository and return the path of its bare clone."""
    work = root / "work"
    git(root, "init", "-q", "-b", "master", str(work))

    _write(work, "README.md", README)
    _write(work, "files/ruby/popen.rb", POPEN_RB)
    _write(work, "files/ruby/regex.rb", REGEX_RB)
    _commit(work, "Initial commit")

    _write(work, ".gitmodules", GITMODULES)
    git(work, "add", ".gitmodules")
    git(work, "update-index", "--add", "--cacheinfo", f"160000,{GRACK_SHA},gitlab-grack")
    git(work, "commit", "-q", "-m", "Add gitlab-grack submodule")

    git(work, "checkout", "-q", "-b", "fix", "master")
    _write(work, "files/ruby/popen.rb", POPEN_RB_FIX)
    _commit(work, "Set LANG for popen commands")

    git(work, "checkout", "-q", "-b", "feature", "master")
    _write(work, "files/ruby/feature.rb", FEATURE_RB)
    _commit(work, "Add feature.rb")

    git(work, "checkout", "-q", "-b", "add-submodule-version-bump", "master")
    git(work, "update-index", "--cacheinfo", f"160000,{GRACK_BUMPED_SHA},gitlab-grack")
    git(work, "commit", "-q", "-m", "Bump gitlab-grack")

    git(work, "checkout", "-q", "-b", "remove-submodule", "master")
    git(work, "rm", "-q", "--cached", "gitlab-grack")
    git(work, "rm", "-q", ".gitmodules")
    git(work, "commit", "-q", "-m", "Remove gitlab-grack submodule")

    git(work, "checkout", "-q", "-b", "conflict", "master")
    _write(work, "README.md", README_CONFLICT)
    _commit(work, "Rename the sample repo")

    git(work, "checkout", "-q", "master")
    _write(work, "README.md", README_MASTER)
    _commit(work, "Describe the repository")

    bare = root / "seed.git"
    git(root, "clone", "-q", "--bare", str(work), str(bare))
    return bare


@pytest.fixture(scope="session")
def seed_repository(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Bare repository every project repository is copied from."""
    return build_seed_repository(tmp_path_factory.mktemp("seed"))


@pytest_asyncio.fixture
async def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    import githarbor.core.database.entities  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(name="session")
async def session_fixture(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


class Factory:
    """Create persisted test data, one record per call."""

    def __init__(self, session: AsyncSession, seed_repository: Path, repositories_root: Path) -> None:
        self.session = session
        self.seed_repository = seed_repository
        self.repositories_root = repositories_root
        self._sequence = itertools.count(1)

    async def _save(self, entity):
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return entity

    async def user(self, username: Optional[str] = None, *, admin: bool = False) -> User:
        username = username or f"user{next(self._sequence)}"
        return await self._save(
            User(
                username=username,
                name=username.capitalize(),
                email=f"{username}@example.com",
                admin=admin,
                authentication_token=f"token-{username}",
            )
        )

    async def namespace(self, owner: Optional[User] = None, path: Optional[str] = None) -> Namespace:
        if owner is None:
            owner = await self.user()
        path = path or f"namespace{next(self._sequence)}"
        return await self._save(Namespace(path=path, name=path, owner_id=owner.id))

    async def project(
        self,
        namespace: Optional[Namespace] = None,
        *,
        path: Optional[str] = None,
        visibility: Visibility = Visibility.private,
        forked_from: Optional[Project] = None,
        empty: bool = False,
        only_allow_merge_if_build_succeeds: bool = False,
    ) -> Project:
        """Create a project; non-empty projects get a copy of the seed repository."""
        if namespace is None:
            namespace = await self.namespace()
        path = path or f"project{next(self._sequence)}"
        repository_path = self.repositories_root / namespace.path / f"{path}.git"
        if not empty:
            shutil.copytree(self.seed_repository, repository_path)
        return await self._save(
            Project(
                namespace_id=namespace.id,
                path=path,
                full_path=f"{namespace.path}/{path}",
                name=path,
                visibility=visibility.value,
                repository_path=str(repository_path),
                forked_from_project_id=forked_from.id if forked_from else None,
                only_allow_merge_if_build_succeeds=only_allow_merge_if_build_succeeds,
            )
        )

    async def member(self, project: Project, user: User, level: AccessLevel) -> ProjectMember:
        return await self._save(ProjectMember(project_id=project.id, user_id=user.id, access_level=int(level)))

    async def merge_request(
        self,
        project: Project,
        author: User,
        *,
        source_project: Optional[Project] = None,
        source_branch: str = "fix",
        target_branch: str = "master",
        title: Optional[str] = None,
    ) -> MergeRequest:
        """Create a merge request with diff refs through ``CreateService``."""
        from githarbor.server.services.merge_requests.create import CreateService

        params = {
            "source_project": (source_project or project).id,
            "source_branch": source_branch,
            "target_project": project.id,
            "target_branch": target_branch,
            "title": title or f"Merge request {next(self._sequence)}",
        }
        result = await CreateService(self.session, source_project or project, author, params).execute()
        assert result.valid, result.errors
        return result.merge_request

    async def pipeline(
        self, project: Project, *, sha: str, ref: str, status: PipelineStatus = PipelineStatus.pending
    ) -> Pipeline:
        return await self._save(Pipeline(project_id=project.id, sha=sha, ref=ref, status=status.value))


@pytest.fixture
def factory(session: AsyncSession, seed_repository: Path, tmp_path: Path) -> Factory:
    return Factory(session, seed_repository, tmp_path / "repositories")


@pytest.fixture
def push_file(tmp_path: Path):
    """Commit raw bytes at a path on a new branch of a project repository."""

    def push(project: Project, branch: str, path: str, content: bytes, message: str = "Add file") -> None:
        work = tmp_path / "pushes" / branch
        work.parent.mkdir(parents=True, exist_ok=True)
        git(work.parent, "clone", "-q", project.repository_path, str(work))
        git(work, "checkout", "-q", "-b", branch, "master")
        target = work / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        _commit(work, message)
        git(work, "push", "-q", "origin", branch)

    return push
