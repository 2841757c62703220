from branch_store import Branch, Vote
from selection import alternatives_count, rank_branches, score, select_winner, winners_by_reference


def make_branch(branch_id, reference='GEN', votes=(), canonical=False):
    return Branch(
        id=branch_id,
        level='book',
        reference=reference,
        content=f'content {branch_id}',
        is_canonical=canonical,
        votes=[Vote(f'user-{i}', branch_id, v) for i, v in enumerate(votes)],
    )


def test_score_sums_vote_values():
    assert score(make_branch('a')) == 0
    assert score(make_branch('a', votes=[1, 1, -1, 1])) == 2
    assert score(make_branch('a', votes=[-1, -1])) == -2


def test_select_winner_empty():
    assert select_winner([]) is None


def test_canonical_beats_higher_score():
    popular = make_branch('popular', votes=[1] * 5)
    official = make_branch('official', votes=[-1] * 3, canonical=True)
    assert select_winner([popular, official]) is official


def test_rank_orders_by_score_after_canonical():
    low = make_branch('low', votes=[-1])
    mid = make_branch('mid')
    high = make_branch('high', votes=[1, 1])
    canon = make_branch('canon', canonical=True)
    assert [b.id for b in rank_branches([low, mid, high, canon])] == ['canon', 'high', 'mid', 'low']


def test_ties_keep_input_order():
    first = make_branch('first', votes=[1])
    second = make_branch('second', votes=[1])
    third = make_branch('third', votes=[1])
    assert [b.id for b in rank_branches([first, second, third])] == ['first', 'second', 'third']
    assert [b.id for b in rank_branches([third, first, second])] == ['third', 'first', 'second']
    assert select_winner([second, first]) is second


def test_alternatives_count():
    assert alternatives_count([]) == 0
    assert alternatives_count([make_branch('a')]) == 0
    assert alternatives_count([make_branch(str(i)) for i in range(4)]) == 3


def test_winners_by_reference_keeps_competitions_separate():
    gen_a = make_branch('gen-a', 'GEN', votes=[1])
    gen_b = make_branch('gen-b', 'GEN', votes=[1, 1])
    exo = make_branch('exo', 'EXO', votes=[-1, -1, -1])

    selections = winners_by_reference([gen_a, exo, gen_b])

    assert set(selections) == {'GEN', 'EXO'}
    assert selections['GEN'].winner is gen_b
    assert selections['GEN'].alternatives_count == 1
    assert selections['EXO'].winner is exo
    assert selections['EXO'].alternatives_count == 0
