"""
engine — dispatch and deduplication core.

Sub-modules:
    models      — data structures shared across the engine
    normalizer  — bare / structured call options → NormalizedCall
    resolver    — three-layer merge into one delivery per channel
    gate        — per-channel enablement chain
    dispatcher  — concurrent fan-out with per-channel failure isolation
    dedup       — fingerprint windows collapsing identical calls
    logger      — SignalLogger facade tying the stages together
"""
