"""Fingering RL — reinforcement-learning piano fingering.

Sub-package containing:
    types         – notes, fingerings, states (immutable, hashable)
    geometry      – keyboard distances and stretch measures
    candidates    – admissible fingerings for chords and single-note steps
    reward        – ergonomic reward model
    mdp           – action space / reward façade used by the solvers
    priority      – indexed priority queue for prioritized sweeping
    q_learning    – tabular Q-learning solver and policy extraction
    dyna_q        – Dyna-Q solver with prioritized sweeping
    segmentation  – segment splitting, parallel replicas, table merging
    annotate      – two-hand orchestration and JSON export
    config        – YAML-backed solver / reward settings
    errors        – input validation and exceptions
"""
