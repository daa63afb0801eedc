import pytest

from histedit import base
from histedit.errors import NotARepositoryError, ResolutionError


def test_open_empty_repository(builder):
    info = base.open_repo(builder.path)

    assert info.path == builder.path
    assert info.current_branch == 'main'
    assert info.commit_count == 0
    assert base.list_commits(0, 50) == []


def test_open_counts_commits_on_current_branch(builder):
    builder.linear(3)
    builder.commit('elsewhere', parents=[builder.branch_tip()], branch='other')

    info = base.open_repo(builder.path)

    assert info.current_branch == 'main'
    assert info.commit_count == 3


def test_open_detached_head(builder):
    oids = builder.linear(3)
    builder.detach(oids[1])

    info = base.open_repo(builder.path)

    assert info.current_branch == base.DETACHED
    assert info.commit_count == 2


def test_open_rejects_non_repository(builder, tmp_path):
    not_a_repo = tmp_path / 'plain'
    not_a_repo.mkdir()

    with pytest.raises(NotARepositoryError):
        base.open_repo(str(not_a_repo))


def test_list_commits_paginates_newest_first(builder):
    oids = builder.linear(5)

    page = base.list_commits(1, 2)

    assert [summary.id for summary in page] == [oids[3], oids[2]]
    assert page[0].short_message == 'C3'
    assert page[0].author_name == 'Alice'
    assert page[0].author_email == 'alice@example.com'
    assert base.list_commits(10, 5) == []


def test_list_commits_rejects_negative_window(builder):
    builder.linear(1)

    with pytest.raises(ValueError):
        base.list_commits(-1, 5)


@pytest.mark.parametrize('message, expected', [
    ('short subject\n\nbody text', 'short subject'),
    ('x' * 72, 'x' * 72),
    ('y' * 80 + '\nbody', 'y' * 69 + '...'),
    ('', ''),
])
def test_summary_truncates_first_line(builder, message, expected):
    builder.commit(message)

    summary, = base.list_commits(0, 1)

    assert summary.short_message == expected
    assert len(summary.short_message) <= base.SUMMARY_WIDTH


def test_commit_detail_for_merge(builder):
    c0, c1 = builder.linear(2)
    side = builder.commit('side', parents=[c0], branch='side', name='Bob')
    merge = builder.commit('merge side\n\ndetails', parents=[c1, side])

    detail = base.get_commit_detail(merge)

    assert detail.id == merge
    assert detail.message == 'merge side\n\ndetails'
    assert detail.parents == [c1, side]
    assert detail.is_merge is True
    assert detail.author.offset == 120
    assert detail.committer.name == 'Alice'
    assert base.get_commit_detail(side).is_merge is False
    assert base.get_commit_detail(side).author.email == 'bob@example.com'


def test_get_oid_resolves_names_and_abbreviations(builder):
    oids = builder.linear(2)

    assert base.get_oid('@') == oids[1]
    assert base.get_oid('main') == oids[1]
    assert base.get_oid(oids[0][:10]) == oids[0]
    with pytest.raises(ResolutionError):
        base.get_oid('no-such-branch')
    assert base.get_branch_name() == 'main'
