"""
channels — Delivery backends invoked by the engine.

Each channel exposes:
    log / info / warn / error / success (delivery) → None | awaitable
    debug (delivery)                               → optional

Channels are black boxes to the engine: only success or failure counts.
"""
