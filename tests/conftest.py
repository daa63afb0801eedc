import pygit2
import pytest

from histedit import data

BLOB_MODE = 0o100644
START_TIME = 1_700_000_000


class RepoBuilder:
    """Writes commits straight into a scratch repository."""

    def __init__(self, path):
        self.path = str(path)
        self.repo = pygit2.init_repository(self.path, initial_head='main')
        self.clock = START_TIME

    def tree(self, content):
        blob = self.repo.create_blob(content.encode())
        builder = self.repo.TreeBuilder()
        builder.insert('file.txt', blob, BLOB_MODE)
        return builder.write()

    def commit(self, message, parents=(), branch='main', name='Alice', time=None):
        self.clock += 60
        sig = pygit2.Signature(name, f'{name.lower()}@example.com', time or self.clock, 120)
        oid = self.repo.create_commit(
            None, sig, sig, message, self.tree(message),
            [pygit2.Oid(hex=parent) for parent in parents],
        )
        if branch:
            self.set_branch(branch, str(oid))
        return str(oid)

    def raw_commit(self, message, parents=(), branch='main',
                   author=b'Alice <alice@example.com>', extra_headers=b''):
        """Write the commit object by hand, for histories libgit2 would not create."""
        self.clock += 60
        lines = [b'tree %s' % str(self.tree(str(self.clock))).encode()]
        lines += [b'parent %s' % parent.encode() for parent in parents]
        lines.append(b'author %s %d +0200' % (author, self.clock))
        lines.append(b'committer %s %d +0200' % (author, self.clock))
        raw = b'\n'.join(lines) + b'\n' + extra_headers + b'\n' + message

        oid = str(self.repo.write(pygit2.GIT_OBJECT_COMMIT, raw))
        if branch:
            self.set_branch(branch, oid)
        return oid

    def linear(self, count, branch='main'):
        oids = []
        for i in range(count):
            oids.append(self.commit(f'C{i}', parents=oids[-1:], branch=branch))
        return oids

    def set_branch(self, branch, oid):
        self.repo.create_reference(f'refs/heads/{branch}', pygit2.Oid(hex=oid), force=True)

    def branch_tip(self, branch='main'):
        return str(self.repo.lookup_reference(f'refs/heads/{branch}').target)

    def detach(self, oid):
        self.repo.set_head(pygit2.Oid(hex=oid))

    def messages(self, tip):
        """First-parent messages from ``tip`` back to the root."""
        messages = []
        commit = self.repo[tip]
        while True:
            messages.append(commit.message)
            if not commit.parents:
                return messages
            commit = commit.parents[0]


@pytest.fixture
def builder(tmp_path):
    repo_builder = RepoBuilder(tmp_path / 'repo')
    with data.change_repository(repo_builder.path):
        yield repo_builder
