"""Stateful core: conversion orchestration and fountain state machines.

WHY: Detection, conversion, multi-part assembly and fragment generation
are the only parts of the playground with real state and failure
semantics. They live here, independent of any UI or transport.

HOW: ur.py and errors.py define the value types, detector.py and cache.py
are the leaf services, orchestrator.py drives conversions, assembler.py
and sequencer.py wrap the fountain primitives, scheduler.py times the
animation, relay.py and session.py hand results between contexts.

RULES:
- All components are synchronous; only the scheduler has a timer loop
- Expected failures are returned as typed outcomes, not raised
- Nothing here is thread-safe except ConversionCache and CrossContextRelay
"""
