"""Tests for the fingering MDP: states, action spaces and anchoring."""

from src.fingering_rl.mdp import FingeringMDP
from src.fingering_rl.types import FingerAssignment as FA
from src.fingering_rl.types import Hand, Part, make_groups


def test_initial_state_and_transition():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]))
    state = mdp.initial_state()
    assert state.key == (0, ())
    assert state.next_notes[0].pitch == 60

    nxt = mdp.next_state(state, (FA(60, 1),))
    assert nxt.key == (1, (FA(60, 1),))
    assert nxt.previous_duration == 480
    assert not mdp.is_terminal(nxt)


def test_lead_in_duration_is_previous_duration_at_start():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62]]), Part.LAST, lead_in_duration=960)
    assert mdp.initial_state().previous_duration == 960


def test_first_group_of_piece_enumerates_all_fingers():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]), Part.WHOLE)
    assert len(mdp.action_space(mdp.initial_state())) == 5


def test_middle_segment_is_anchored_at_both_ends():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]), Part.MIDDLE)
    assert mdp.action_space(mdp.initial_state()) == [(FA(60, 5),)]
    last = mdp.state_at(2, (FA(62, 2),))
    assert mdp.action_space(last) == [(FA(64, 5),)]


def test_anchored_chord_uses_full_enumeration():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[64, 67], [60]]), Part.MIDDLE)
    assert len(mdp.action_space(mdp.initial_state())) == 7


def test_long_lead_in_frees_segment_start():
    mdp = FingeringMDP(
        Hand.RIGHT, make_groups([[60], [62]]), Part.MIDDLE, lead_in_duration=15120
    )
    assert len(mdp.action_space(mdp.initial_state())) == 5


def test_first_segment_anchors_last_group_only():
    mdp = FingeringMDP(Hand.LEFT, make_groups([[48], [50], [52]]), Part.FIRST)
    assert len(mdp.action_space(mdp.initial_state())) == 5
    assert mdp.action_space(mdp.state_at(2, (FA(50, 3),))) == [(FA(52, 5),)]


def test_last_segment_end_is_free():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62]]), Part.LAST)
    actions = mdp.action_space(mdp.state_at(1, (FA(60, 1),)))
    assert [a[0].finger for a in actions] == [2, 3, 4, 5]


def test_interior_single_note_uses_1to1_candidates():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]))
    actions = mdp.action_space(mdp.state_at(1, (FA(60, 1),)))
    assert [a[0].finger for a in actions] == [2, 3, 4, 5]


def test_unreachable_single_note_falls_back_to_full_enumeration():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [72], [74]]))
    assert len(mdp.action_space(mdp.state_at(1, (FA(60, 5),)))) == 5


def test_terminal_state_has_no_actions():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62]]))
    terminal = mdp.state_at(2, (FA(62, 2),))
    assert mdp.is_terminal(terminal)
    assert mdp.action_space(terminal) == []
    assert terminal.next_notes == ()


def test_action_space_is_cached():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[60], [62], [64]]))
    state = mdp.state_at(1, (FA(60, 1),))
    assert mdp.action_space(state) is mdp.action_space(state)


def test_default_fingering():
    mdp = FingeringMDP(Hand.RIGHT, make_groups([[64, 60], [60, 62, 64, 65, 67, 69]]))
    assert mdp.default_fingering(0) == (FA(60, 1), FA(64, 2))
    assert [e.pitch for e in mdp.default_fingering(1)] == [62, 64, 65, 67, 69]
